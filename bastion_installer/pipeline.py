from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from .config import Environment
from .errors import OperationFailed, PipelineDefinitionError, ProvisionError
from .lib.secrets import SecretPrompt
from .preconditions import Check, verify

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageContext:
    """What a stage may read. Nothing here is mutated once the run starts."""

    env: Environment
    secrets: SecretPrompt = field(default_factory=SecretPrompt)
    # Prefix for system artifacts: env.target_root during install, "/" after boot.
    sysroot: str = "/"
    home: str = "~"
    dry_run: bool = False


class Stage(Protocol):
    """A named unit of work.

    Optional members the runner looks for:
    - is_satisfied(ctx) -> bool: effect already present, skip without side effects
    - preconditions(ctx) -> Sequence[Check]: verified right before run()
    """

    stage_id: str
    depends_on: Tuple[str, ...]

    def run(self, ctx: StageContext) -> None:
        ...


class StageStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SKIPPED = "skipped"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class PipelineStatus(str, Enum):
    VERIFYING = "verifying"
    EXECUTING = "executing"
    COMPLETED = "completed"
    ABORTED = "aborted"


_STAGE_TRANSITIONS = {
    StageStatus.PENDING: {StageStatus.RUNNING, StageStatus.SKIPPED},
    StageStatus.RUNNING: {StageStatus.SUCCEEDED, StageStatus.FAILED},
}

_DONE = {StageStatus.SUCCEEDED, StageStatus.SKIPPED}


@dataclass(frozen=True)
class Failure:
    kind: str
    message: str
    exit_code: int
    stage_id: Optional[str] = None
    operation: Optional[str] = None
    returncode: Optional[int] = None
    stderr: str = ""

    @classmethod
    def from_exception(cls, e: BaseException, stage_id: Optional[str]) -> "Failure":
        if isinstance(e, OperationFailed):
            return cls(
                kind=e.kind,
                message=str(e),
                exit_code=e.exit_code,
                stage_id=stage_id,
                operation=e.operation,
                returncode=e.returncode,
                stderr=e.stderr,
            )
        if isinstance(e, ProvisionError):
            return cls(kind=e.kind, message=str(e), exit_code=e.exit_code, stage_id=stage_id)
        return cls(kind=type(e).__name__, message=str(e), exit_code=1, stage_id=stage_id)


@dataclass(frozen=True)
class PipelineResult:
    name: str
    status: PipelineStatus
    stages: Dict[str, StageStatus]
    ran_stages: List[str]
    skipped_stages: List[str]
    failure: Optional[Failure] = None

    @property
    def ok(self) -> bool:
        return self.status == PipelineStatus.COMPLETED

    @property
    def exit_code(self) -> int:
        if self.ok:
            return 0
        return self.failure.exit_code if self.failure else 1

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "pipeline": self.name,
            "status": self.status.value,
            "exit_code": self.exit_code,
            "stages": {k: v.value for k, v in self.stages.items()},
            "ran_stages": list(self.ran_stages),
            "skipped_stages": list(self.skipped_stages),
        }
        if self.failure:
            d["failure"] = {
                "stage": self.failure.stage_id,
                "kind": self.failure.kind,
                "message": self.failure.message,
                "operation": self.failure.operation,
                "returncode": self.failure.returncode,
                "stderr": self.failure.stderr,
            }
        return d


def validate_stages(stages: Sequence[Stage]) -> None:
    """Stage ids are unique and every dependency names an *earlier* stage.

    Requiring dependencies to precede their dependents makes the list itself a
    topological order, so cycles cannot be expressed.
    """

    seen: List[str] = []
    for stage in stages:
        sid = stage.stage_id
        if sid in seen:
            raise PipelineDefinitionError(f"Duplicate stage id: {sid}")
        for dep in stage.depends_on:
            if dep == sid:
                raise PipelineDefinitionError(f"Stage {sid} depends on itself")
            if dep not in seen:
                known = any(s.stage_id == dep for s in stages)
                if known:
                    raise PipelineDefinitionError(f"Stage {sid} depends on later stage {dep}")
                raise PipelineDefinitionError(f"Stage {sid} depends on unknown stage {dep}")
        seen.append(sid)


class PipelineRun:
    """One execution attempt over a fixed, ordered stage list."""

    def __init__(
        self,
        *,
        name: str,
        ctx: StageContext,
        stages: Sequence[Stage],
        checks: Sequence[Check] = (),
    ) -> None:
        validate_stages(stages)
        self.name = name
        self.ctx = ctx
        self.stages = list(stages)
        self.checks = list(checks)
        self.status = PipelineStatus.VERIFYING
        self.stage_status: Dict[str, StageStatus] = {s.stage_id: StageStatus.PENDING for s in self.stages}
        self.ran: List[str] = []
        self.skipped: List[str] = []
        self.failure: Optional[Failure] = None

    def _set(self, stage_id: str, new: StageStatus) -> None:
        old = self.stage_status[stage_id]
        if new not in _STAGE_TRANSITIONS.get(old, set()):
            raise RuntimeError(f"Illegal transition for {stage_id}: {old.value} -> {new.value}")
        self.stage_status[stage_id] = new

    def _abort(self, e: BaseException, stage_id: Optional[str]) -> None:
        self.failure = Failure.from_exception(e, stage_id)
        self.status = PipelineStatus.ABORTED
        where = f"stage {stage_id}" if stage_id else "preconditions"
        if isinstance(e, ProvisionError):
            logger.error("[%s] aborted in %s: %s", self.name, where, e)
        else:
            logger.exception("[%s] aborted in %s with unexpected error", self.name, where)

    def _result(self) -> PipelineResult:
        return PipelineResult(
            name=self.name,
            status=self.status,
            stages=dict(self.stage_status),
            ran_stages=list(self.ran),
            skipped_stages=list(self.skipped),
            failure=self.failure,
        )

    def _run_stage(self, stage: Stage) -> None:
        sid = stage.stage_id
        for dep in stage.depends_on:
            if self.stage_status[dep] not in _DONE:
                raise PipelineDefinitionError(f"Stage {sid} reached before dependency {dep} completed")

        is_satisfied = getattr(stage, "is_satisfied", None)
        if is_satisfied is not None and is_satisfied(self.ctx):
            logger.info("[%s] Skipping stage %s (already satisfied)", self.name, sid)
            self._set(sid, StageStatus.SKIPPED)
            self.skipped.append(sid)
            return

        self._set(sid, StageStatus.RUNNING)
        logger.info("[%s] Running stage %s", self.name, sid)
        preconditions = getattr(stage, "preconditions", None)
        if preconditions is not None:
            verify(preconditions(self.ctx))
        stage.run(self.ctx)
        self._set(sid, StageStatus.SUCCEEDED)
        self.ran.append(sid)

    def execute(self) -> PipelineResult:
        if self.status != PipelineStatus.VERIFYING:
            raise RuntimeError("A pipeline run can only be executed once")

        try:
            verify(self.checks)
        except Exception as e:
            self._abort(e, None)
            return self._result()

        self.status = PipelineStatus.EXECUTING
        for stage in self.stages:
            try:
                self._run_stage(stage)
            except Exception as e:
                if self.stage_status[stage.stage_id] == StageStatus.RUNNING:
                    self._set(stage.stage_id, StageStatus.FAILED)
                self._abort(e, stage.stage_id)
                return self._result()

        self.status = PipelineStatus.COMPLETED
        logger.info(
            "[%s] Completed (ran=%d skipped=%d)",
            self.name,
            len(self.ran),
            len(self.skipped),
        )
        return self._result()


def run_pipeline(
    *,
    name: str,
    ctx: StageContext,
    stages: Sequence[Stage],
    checks: Sequence[Check] = (),
) -> PipelineResult:
    """Verify entry checks, then run stages in order with fail-fast semantics."""

    return PipelineRun(name=name, ctx=ctx, stages=stages, checks=checks).execute()


def format_report(result: PipelineResult) -> str:
    lines = [f"Pipeline {result.name}: {result.status.value.upper()}"]
    width = max((len(s) for s in result.stages), default=0)
    for sid, st in result.stages.items():
        lines.append(f"  {sid.ljust(width)}  {st.value}")

    f = result.failure
    if f is not None:
        where = f"stage {f.stage_id}" if f.stage_id else "preconditions (no stage executed)"
        lines.append("")
        lines.append(f"ABORTED in {where}: {f.kind}")
        if f.operation:
            lines.append(f"  operation: {f.operation}")
            if f.returncode is not None:
                lines.append(f"  exit code: {f.returncode}")
            if f.stderr.strip():
                lines.append("  captured error output:")
                lines.extend(f"    {ln}" for ln in f.stderr.rstrip().splitlines())
        else:
            lines.append(f"  {f.message}")
    return "\n".join(lines) + "\n"
