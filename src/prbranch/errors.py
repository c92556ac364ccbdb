"""
Result types for the state engine.

Failures are values: an operation returns either ``Ok(value)`` or an ``Err``
tagged with an ``ErrorKind``. ``EngineError`` exists only so a caller can
turn an ``Err`` back into an exception with ``unwrap()``.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Generic, NoReturn, Optional, TypeVar, Union

from git import GitCommandError

T = TypeVar("T")


class ErrorKind(str, Enum):
    NOT_A_GIT_REPOSITORY = "not_a_git_repository"
    REF_UNRESOLVABLE = "ref_unresolvable"
    GIT_COMMAND_FAILURE = "git_command_failure"
    USER_CANCELLED = "user_cancelled"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    detail: str
    command: Optional[str] = None
    stderr: Optional[str] = None

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self) -> NoReturn:
        raise EngineError(self)

    def __str__(self) -> str:
        if self.stderr:
            return f"{self.detail}\n{self.stderr}"
        return self.detail


Result = Union[Ok[T], Err]


class EngineError(Exception):
    """Raised by ``Err.unwrap()``; carries the originating ``Err``."""

    def __init__(self, err: Err):
        super().__init__(str(err))
        self.err = err

    @property
    def kind(self) -> ErrorKind:
        return self.err.kind


_STDERR_WRAPPER = re.compile(r"^\s*stderr: '(.*)'\s*$", re.DOTALL)


def raw_stderr(error: GitCommandError) -> str:
    """Strip GitPython's ``stderr: '...'`` decoration from a command error."""
    stderr = error.stderr
    if isinstance(stderr, bytes):
        stderr = stderr.decode("utf-8", errors="replace")
    stderr = stderr or ""
    match = _STDERR_WRAPPER.match(stderr)
    if match:
        stderr = match.group(1)
    return stderr.strip()


def command_failure(error: GitCommandError) -> Err:
    """Convert a GitPython command error into an ``Err``."""
    command = error.command
    if isinstance(command, (list, tuple)):
        command = " ".join(str(part) for part in command)
    return Err(
        kind=ErrorKind.GIT_COMMAND_FAILURE,
        detail=f"Git command failed: {command}",
        command=str(command),
        stderr=raw_stderr(error),
    )


def not_a_repository(path: str) -> Err:
    return Err(kind=ErrorKind.NOT_A_GIT_REPOSITORY, detail=f"Not inside a Git repository: {path}")


def user_cancelled() -> Err:
    return Err(kind=ErrorKind.USER_CANCELLED, detail="Aborted by user.")


def ref_unresolvable(ref: str) -> Err:
    return Err(kind=ErrorKind.REF_UNRESOLVABLE, detail=f"Cannot resolve {ref}; comparing as divergent")
