"""Chunk-loop progress for the map phase.

:func:`track` wraps the pipeline's window iterator and advances a reporter by
one per summarized window. Reporters come from a factory registered with
:func:`set_progress_factory`; the CLI registers a tqdm bar. With no factory
registered the windows pass through untouched.
"""

from __future__ import annotations

from typing import Callable, ContextManager, Iterable, Iterator, Optional, Protocol, TypeVar

T = TypeVar("T")


class ProgressReporter(Protocol):
    def update(self, advance: int) -> None: ...


# (total, description) -> context manager yielding a reporter
ProgressFactory = Callable[[Optional[int], str], ContextManager[ProgressReporter]]

_factory: Optional[ProgressFactory] = None


def set_progress_factory(factory: Optional[ProgressFactory]) -> None:
    """Register the reporter factory used by :func:`track`; ``None`` silences it."""
    global _factory
    _factory = factory


def track(items: Iterable[T], total: Optional[int], description: str) -> Iterator[T]:
    """Yield ``items`` unchanged, advancing the active reporter after each one.

    The reporter is opened on the first ``next()`` and closed when the
    iterator is exhausted or closed. An item only counts once the consumer
    asks for the next one, so a window whose summary raised is never reported
    as done.
    """
    if _factory is None:
        yield from items
        return
    with _factory(total, description) as reporter:
        for item in items:
            yield item
            reporter.update(1)


__all__ = ["ProgressFactory", "ProgressReporter", "set_progress_factory", "track"]
