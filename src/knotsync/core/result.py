"""
Result envelope for consistent success/failure handling.

Every Sync Engine operation returns ``Ok[T]`` on success or ``Err[T]`` on
failure instead of raising for expected failures (missing session, missing
entity, rejected batch). The caller sees exactly one signal per operation
and never a partially applied result.

Examples:
    >>> from knotsync.core.result import Ok, Err, Result
    >>> def divide(a: int, b: int) -> Result[float]:
    ...     if b == 0:
    ...         return Err(ValueError("Division by zero"))
    ...     return Ok(a / b)
    >>> match divide(10, 2):
    ...     case Ok(value):
    ...         print(f"Result: {value}")
    ...     case Err(error):
    ...         print(f"Error: {error}")
    Result: 5.0

Tags:
    result-pattern, error-handling, knotsync
"""

from __future__ import annotations

from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from knotsync.core.errors import KnotSyncError


T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful result containing a value."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        """Get the value. Safe for Ok."""
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def map(self, f: Callable[[T], U]) -> Result[U]:
        """Transform the value if Ok."""
        return Ok(f(self.value))

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[T]):
    """Failed result containing the error that stopped the operation."""

    error: Exception

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> T:
        """Raise the error. Use only when you're sure it's Ok."""
        raise self.error

    def unwrap_or(self, default: T) -> T:
        return default

    def map(self, f: Callable[[T], U]) -> Result[U]:
        return Err(self.error)

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


Result = Ok[T] | Err[T]


async def try_result_async(
    f: Callable[[], Awaitable[T]],
    *,
    catch: tuple[type[Exception], ...] = (KnotSyncError,),
) -> Result[T]:
    """
    Await ``f`` and wrap its outcome.

    Only exceptions listed in ``catch`` become ``Err``; anything else is a bug
    and propagates.

    Example:
        >>> result = await try_result_async(lambda: store.get(path, "s1"))
    """
    try:
        return Ok(await f())
    except catch as e:
        return Err(e)


__all__ = ["Ok", "Err", "Result", "try_result_async"]
