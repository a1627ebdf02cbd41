"""Shared documentation helper for behaviour-tagged tests."""

from __future__ import annotations

from typing import Callable, TypeVar, cast

F = TypeVar("F", bound=Callable[..., object])


def documents(note: str) -> Callable[[F], F]:
    """Annotate a test with the documented behaviour it enforces.

    The note is prepended to the test's docstring so that it shows up in
    pytest's verbose output; the test function itself is returned unchanged.
    """
    def decorator(func: F) -> F:
        func.__doc__ = note if func.__doc__ is None else f"{note}\n{func.__doc__}"
        return cast(F, func)

    return decorator


__all__ = ["documents"]
