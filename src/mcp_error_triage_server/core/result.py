"""Result type for primary/fallback strategy composition."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True, slots=True)
class Err:
    error: Exception


Result = Union[Ok[T], Err]


def unwrap_or_else(result: Result[T], fallback: Callable[[Exception], T]) -> T:
    """Return the Ok value, or the fallback's output for an Err."""
    if isinstance(result, Ok):
        return result.value
    return fallback(result.error)
