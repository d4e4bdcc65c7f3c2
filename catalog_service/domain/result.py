"""Tagged results returned across the service boundary."""

import functools
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, ParamSpec, TypeVar

from catalog_service.domain.exceptions import CatalogError, StorageError

T = TypeVar("T")
P = ParamSpec("P")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a catalog operation.

    Attributes:
        value: Success value (None for failed results).
        error: Error for failed results, None on success.
    """

    value: T | None = None
    error: CatalogError | None = None

    @property
    def ok(self) -> bool:
        """Whether the operation succeeded."""
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        """Build a successful result."""
        return cls(value=value)

    @classmethod
    def failure(cls, error: CatalogError) -> "Result[T]":
        """Build a failed result."""
        return cls(error=error)

    def unwrap(self) -> T:
        """Return the value or raise the carried error.

        Raises:
            CatalogError: If the result is a failure.
        """
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


def returns_result(
    func: Callable[P, Awaitable[T]],
) -> Callable[P, Awaitable[Result[T]]]:
    """Wrap an async operation so expected failures become results.

    ``CatalogError`` subclasses are converted into ``Result.failure``;
    ``StorageError`` and anything else propagate unchanged.
    """

    @functools.wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> Result[T]:
        try:
            value = await func(*args, **kwargs)
        except StorageError:
            raise
        except CatalogError as exc:
            return Result.failure(exc)
        return Result.success(value)

    return wrapper
