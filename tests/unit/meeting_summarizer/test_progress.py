"""Unit tests for meeting_summarizer.progress."""

from __future__ import annotations

from contextlib import contextmanager

import pytest

from meeting_summarizer import progress


def _recording_factory(events):
    class _Recorder:
        def update(self, advance):
            events.append(("update", advance))

    @contextmanager
    def factory(total, description):
        events.append(("open", total, description))
        try:
            yield _Recorder()
        finally:
            events.append(("close",))

    return factory


@pytest.mark.unit
class TestTrack:
    def test_passthrough_without_factory(self):
        assert list(progress.track(["a", "b"], 2, "Summarizing chunks")) == ["a", "b"]

    def test_one_update_per_item(self):
        events = []
        progress.set_progress_factory(_recording_factory(events))

        assert list(progress.track(["a", "b", "c"], 3, "Summarizing chunks")) == ["a", "b", "c"]
        assert events == [
            ("open", 3, "Summarizing chunks"),
            ("update", 1),
            ("update", 1),
            ("update", 1),
            ("close",),
        ]

    def test_reporter_opened_lazily(self):
        events = []
        progress.set_progress_factory(_recording_factory(events))

        tracked = progress.track(["a"], 1, "Summarizing chunks")
        assert events == []
        next(tracked)
        assert events == [("open", 1, "Summarizing chunks")]

    def test_failed_item_not_counted(self):
        events = []
        progress.set_progress_factory(_recording_factory(events))

        tracked = progress.track(["a", "b", "c"], 3, "Summarizing chunks")
        for index, _ in enumerate(tracked):
            if index == 1:
                break
        tracked.close()

        assert events.count(("update", 1)) == 1
        assert events[-1] == ("close",)

    def test_none_restores_passthrough(self):
        events = []
        progress.set_progress_factory(_recording_factory(events))
        progress.set_progress_factory(None)

        assert list(progress.track([1, 2], 2, "Summarizing chunks")) == [1, 2]
        assert events == []
