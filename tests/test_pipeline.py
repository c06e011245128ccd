"""
Tests for the stage runner: ordering, fail-fast, skipping and reporting.
"""

import pytest

from bastion_installer.errors import OperationFailed, PipelineDefinitionError, TimeoutExceeded
from bastion_installer.pipeline import (
    PipelineStatus,
    StageStatus,
    format_report,
    run_pipeline,
    validate_stages,
)
from bastion_installer.preconditions import Check


class RecordingStage:
    """A stage whose effect is a flag in a shared dict."""

    def __init__(self, stage_id, log, state=None, depends_on=(), error=None):
        self.stage_id = stage_id
        self.depends_on = tuple(depends_on)
        self._log = log
        self._state = state
        self._error = error

    def run(self, ctx):
        self._log.append(self.stage_id)
        if self._error is not None:
            raise self._error
        if self._state is not None:
            self._state[self.stage_id] = True


class IdempotentStage(RecordingStage):
    def is_satisfied(self, ctx):
        return bool(self._state.get(self.stage_id))


def _six(log, failing=None, error=None):
    stages = []
    for i in range(1, 7):
        sid = f"s{i}"
        deps = (f"s{i - 1}",) if i > 1 else ()
        stages.append(RecordingStage(sid, log, depends_on=deps, error=error if sid == failing else None))
    return stages


class TestValidation:
    def test_duplicate_ids(self):
        log = []
        with pytest.raises(PipelineDefinitionError, match="Duplicate"):
            validate_stages([RecordingStage("a", log), RecordingStage("a", log)])

    def test_dependency_on_later_stage(self):
        log = []
        with pytest.raises(PipelineDefinitionError, match="later stage"):
            validate_stages([RecordingStage("a", log, depends_on=("b",)), RecordingStage("b", log)])

    def test_unknown_dependency(self):
        with pytest.raises(PipelineDefinitionError, match="unknown stage"):
            validate_stages([RecordingStage("a", [], depends_on=("zzz",))])

    def test_self_dependency(self):
        with pytest.raises(PipelineDefinitionError, match="itself"):
            validate_stages([RecordingStage("a", [], depends_on=("a",))])


class TestExecution:
    def test_runs_in_order(self, make_ctx):
        log = []
        result = run_pipeline(name="t", ctx=make_ctx(), stages=_six(log))
        assert result.status == PipelineStatus.COMPLETED
        assert result.exit_code == 0
        assert log == ["s1", "s2", "s3", "s4", "s5", "s6"]
        assert all(st == StageStatus.SUCCEEDED for st in result.stages.values())

    def test_failure_in_third_of_six(self, make_ctx):
        log = []
        err = OperationFailed("sgdisk --zap-all /dev/vda", 2, "Problem opening /dev/vda for reading!")
        result = run_pipeline(name="install", ctx=make_ctx(), stages=_six(log, failing="s3", error=err))

        assert log == ["s1", "s2", "s3"]
        assert result.status == PipelineStatus.ABORTED
        assert result.stages["s1"] == StageStatus.SUCCEEDED
        assert result.stages["s2"] == StageStatus.SUCCEEDED
        assert result.stages["s3"] == StageStatus.FAILED
        for sid in ("s4", "s5", "s6"):
            assert result.stages[sid] == StageStatus.PENDING
        assert result.exit_code == 1

        report = format_report(result)
        assert "ABORTED in stage s3: OperationFailed" in report
        assert "sgdisk --zap-all /dev/vda" in report
        assert "Problem opening /dev/vda for reading!" in report

    def test_timeout_exit_code(self, make_ctx):
        log = []
        result = run_pipeline(
            name="t",
            ctx=make_ctx(),
            stages=_six(log, failing="s2", error=TimeoutExceeded("/dev/vda1", 10)),
        )
        assert result.exit_code == 3
        assert result.failure.stage_id == "s2"

    def test_unexpected_exception_aborts(self, make_ctx):
        log = []
        result = run_pipeline(name="t", ctx=make_ctx(), stages=_six(log, failing="s1", error=KeyError("x")))
        assert result.status == PipelineStatus.ABORTED
        assert result.failure.kind == "KeyError"
        assert result.exit_code == 1

    def test_failed_precondition_runs_nothing(self, make_ctx):
        log = []
        result = run_pipeline(
            name="install",
            ctx=make_ctx(),
            stages=_six(log),
            checks=[Check("ok", lambda: True), Check("/dev/test0 not found", lambda: False)],
        )
        assert log == []
        assert result.status == PipelineStatus.ABORTED
        assert result.exit_code == 2
        assert result.ran_stages == []
        assert all(st == StageStatus.PENDING for st in result.stages.values())
        report = format_report(result)
        assert "preconditions (no stage executed)" in report
        assert "/dev/test0 not found" in report

    def test_satisfied_stage_is_skipped(self, make_ctx):
        log = []
        state = {"b": True}
        stages = [
            IdempotentStage("a", log, state),
            IdempotentStage("b", log, state, depends_on=("a",)),
            IdempotentStage("c", log, state, depends_on=("b",)),
        ]
        result = run_pipeline(name="t", ctx=make_ctx(), stages=stages)
        assert log == ["a", "c"]
        assert result.skipped_stages == ["b"]
        assert result.stages["b"] == StageStatus.SKIPPED

    def test_second_run_is_a_no_op(self, make_ctx):
        log = []
        state = {}

        def build():
            return [
                IdempotentStage("a", log, state),
                IdempotentStage("b", log, state, depends_on=("a",)),
                IdempotentStage("c", log, state, depends_on=("a", "b")),
            ]

        first = run_pipeline(name="t", ctx=make_ctx(), stages=build())
        assert first.ran_stages == ["a", "b", "c"]

        log.clear()
        second = run_pipeline(name="t", ctx=make_ctx(), stages=build())
        assert second.ok
        assert log == []
        assert second.ran_stages == []
        assert second.skipped_stages == ["a", "b", "c"]

    def test_stage_preconditions_fail_the_stage(self, make_ctx):
        log = []

        class Guarded(RecordingStage):
            def preconditions(self, ctx):
                return [Check("snapper missing", lambda: False)]

        stages = [RecordingStage("a", log), Guarded("b", log, depends_on=("a",))]
        result = run_pipeline(name="t", ctx=make_ctx(), stages=stages)
        assert log == ["a"]
        assert result.stages["b"] == StageStatus.FAILED
        assert result.exit_code == 2

    def test_to_dict(self, make_ctx):
        log = []
        err = OperationFailed("pacstrap", 1, "error: failed to commit transaction")
        result = run_pipeline(name="install", ctx=make_ctx(), stages=_six(log, failing="s2", error=err))
        d = result.to_dict()
        assert d["status"] == "aborted"
        assert d["stages"]["s2"] == "failed"
        assert d["failure"]["stage"] == "s2"
        assert d["failure"]["stderr"] == "error: failed to commit transaction"
