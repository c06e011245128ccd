from __future__ import annotations

from typing import Optional


class ProvisionError(RuntimeError):
    """Base class for every fatal pipeline error."""

    kind = "ProvisionError"
    exit_code = 1


class PreconditionNotMet(ProvisionError):
    kind = "PreconditionNotMet"
    exit_code = 2

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class OperationFailed(ProvisionError):
    """An external operation returned failure (or could not be started)."""

    kind = "OperationFailed"
    exit_code = 1

    def __init__(self, operation: str, returncode: Optional[int] = None, stderr: str = "") -> None:
        self.operation = operation
        self.returncode = returncode
        self.stderr = stderr
        msg = f"{operation} failed"
        if returncode is not None:
            msg += f" (exit {returncode})"
        if stderr.strip():
            msg += f"\n{stderr.rstrip()}"
        super().__init__(msg)


class TimeoutExceeded(ProvisionError):
    kind = "TimeoutExceeded"
    exit_code = 3

    def __init__(self, what: str, attempts: int) -> None:
        self.what = what
        self.attempts = attempts
        super().__init__(f"Timed out waiting for {what} after {attempts} attempts")


class PipelineDefinitionError(ValueError):
    """The stage list itself is malformed (duplicate ids, bad dependencies)."""


class ConfigError(ValueError):
    pass
