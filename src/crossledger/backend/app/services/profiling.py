"""Opt-in timing hooks for the service layer."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from time import perf_counter


def profiling_enabled() -> bool:
    """Return ``True`` when calculation profiling should be captured."""

    flag = os.getenv("CROSSLEDGER_PROFILE_CALCULATIONS", "")
    return flag.strip().lower() in {"1", "true", "yes", "on"}


def new_timings() -> dict[str, float] | None:
    return {} if profiling_enabled() else None


@contextmanager
def profile_section(name: str, store: dict[str, float] | None) -> Iterator[None]:
    """Capture the duration of a named section when profiling is enabled."""

    if store is None:
        yield
        return

    start = perf_counter()
    try:
        yield
    finally:
        store[name] = perf_counter() - start


def log_timings(logger: logging.Logger, label: str, store: dict[str, float] | None) -> None:
    if store is None:
        return
    logger.debug(
        "%s timings (ms): %s",
        label,
        {name: round(duration * 1000, 3) for name, duration in store.items()},
    )


__all__ = ["log_timings", "new_timings", "profile_section", "profiling_enabled"]
