from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Generic, TypeVar

from photoforge_workflow.util.errors import AuthError, PhotoForgeError

T = TypeVar("T")


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Outcome of a remote operation, as handed to the UI layer.

    Remote failures end up here instead of being raised; local usage errors
    (bad transitions, invalid input) are still raised by the caller.
    """
    ok: bool
    value: T | None = None
    error: PhotoForgeError | None = None
    message: str = ""

    @property
    def requires_reauth(self) -> bool:
        return isinstance(self.error, AuthError)

    @classmethod
    def success(cls, value: T | None = None, message: str = "") -> "OperationResult[T]":
        return cls(ok=True, value=value, message=message)

    @classmethod
    def failure(cls, error: PhotoForgeError, value: T | None = None) -> "OperationResult[T]":
        return cls(ok=False, value=value, error=error, message=str(error))


async def capture(call: Awaitable[T], success_message: str = "") -> OperationResult[T]:
    """Await a remote call and fold any PhotoForgeError into a failed result."""
    try:
        value = await call
    except PhotoForgeError as e:
        return OperationResult.failure(e)
    return OperationResult.success(value, success_message)
