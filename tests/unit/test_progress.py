from __future__ import annotations

from unittest.mock import Mock, patch

import pytest

from sheet_sync.models.sync_models import LogEvent, ProgressEvent, ResultEvent, StartEvent
from sheet_sync.services.progress import (
    ProgressPresenter,
    RowProgressBar,
    initial_eta_ms,
    is_tty_enabled,
    learned_ms_per_row,
    rate_performance,
    remaining_ms,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def test_is_tty_enabled_returns_stdout_isatty():
    with patch("sys.stdout.isatty", return_value=True):
        assert is_tty_enabled() is True
    with patch("sys.stdout.isatty", return_value=False):
        assert is_tty_enabled() is False


def test_eta_helpers():
    assert initial_eta_ms(10, 10) == 1500  # floor
    assert initial_eta_ms(500, 10) == 5000
    assert remaining_ms(100, 0, 0, 12) == 1200
    assert remaining_ms(100, 50, 1000, 12) == 50 * 20


@pytest.mark.parametrize(
    "duration, written, estimated, expected",
    [
        (4000, 200, 50, 20),
        (4000, 0, 200, 20),  # nothing written -> estimate
        (10, 1000, 10, 3),  # lower clamp
        (100000, 10, 10, 200),  # upper clamp
        (500, 0, 0, 200),  # max(..., 1)
    ],
)
def test_learned_ms_per_row(duration, written, estimated, expected):
    assert learned_ms_per_row(duration, written, estimated) == expected


def test_rate_performance_bands():
    assert rate_performance(5) == "excellent"
    assert rate_performance(20) == "good"
    assert rate_performance(80) == "needs improvement"


def test_start_progress_result_scenario():
    clock = FakeClock()
    p = ProgressPresenter(clock=clock)
    p.begin(None)
    p.handle(StartEvent(total=10))
    seen = []
    for n in (2, 4, 6, 8, 10):
        clock.now += 0.1
        p.handle(ProgressEvent(processed=n, total=10, inserted=n, updated=0, errors=0))
        seen.append(p.percentage)
    assert seen == [20, 40, 60, 80, 99]
    assert not p.finished
    p.handle(ResultEvent(True, "ok", {"inserted": 10, "updated": 0, "errors": 0}))
    assert p.percentage == 100
    assert p.finished
    assert p.stats.as_dict() == {"processed": 10, "inserted": 10, "updated": 0, "errors": 0}
    counts = p.log.counts()
    assert counts["START"] == 1 and counts["PROGRESS"] == 5 and counts["RESULT"] == 1


def test_ten_row_run_with_inserts_and_updates():
    clock = FakeClock()
    p = ProgressPresenter(clock=clock)
    p.begin(None)
    p.handle(StartEvent(total=10))
    steps = [(2, 2, 0), (4, 3, 1), (6, 5, 1), (8, 6, 2), (10, 7, 3)]
    for processed, inserted, updated in steps:
        clock.now += 0.1
        p.handle(ProgressEvent(processed=processed, total=10, inserted=inserted, updated=updated, errors=0))
    assert p.percentage == 99
    p.handle(ResultEvent(True, "ok", {"inserted": 7, "updated": 3, "errors": 0}))
    assert p.stats.as_dict() == {"processed": 10, "inserted": 7, "updated": 3, "errors": 0}
    assert p.percentage == 100
    assert p.log.counts()["RESULT"] == 1


def test_percentage_never_decreases():
    clock = FakeClock()
    p = ProgressPresenter(ms_per_row=10, clock=clock)
    p.begin(200)  # ETA 2000 ms
    clock.now += 1.0
    assert p.tick() == 47  # floor(1000 / 2000 * 95)
    clock.now += 10.0
    assert p.tick() == 95  # timer cap
    p.handle(StartEvent(total=10))
    p.handle(ProgressEvent(processed=1, total=10))
    assert p.percentage == 95
    p.handle(ProgressEvent(processed=10, total=10))
    assert p.percentage == 99


def test_failed_result_still_reaches_100():
    p = ProgressPresenter(clock=FakeClock())
    p.begin(10)
    p.handle(ResultEvent(False, "table not found"))
    assert p.percentage == 100
    assert p.log.entries[-1].message.startswith("failed: table not found")
    # late ticks do not move a finished run
    p.tick()
    assert p.percentage == 100


def test_progress_checkpoints_every_tenth():
    p = ProgressPresenter(clock=FakeClock())
    p.begin(100)
    p.handle(StartEvent(total=100))
    for n in (5, 10, 15, 20, 25):
        p.handle(ProgressEvent(processed=n, total=100))
    assert [e.message.split(" ")[0] for e in p.log.filter("PROGRESS")] == ["10/100", "20/100"]


def test_progress_without_total_logs_no_checkpoint():
    p = ProgressPresenter(clock=FakeClock())
    p.begin(None)
    for n in (1, 2, 3):
        p.handle(ProgressEvent(processed=n, total=0, inserted=n))
    assert p.log.filter("PROGRESS") == []
    assert p.stats.inserted == 3
    assert p.percentage == 0


def test_log_events_map_to_tags():
    p = ProgressPresenter(clock=FakeClock())
    p.handle(LogEvent("warn", "w"))
    p.handle(LogEvent("error", "e"))
    p.handle(LogEvent("info", "i"))
    assert [e.tag for e in p.log.entries] == ["WARN", "ERROR", "INFO"]


def test_presenter_drives_bar():
    bar = Mock()
    p = ProgressPresenter(bar=bar, clock=FakeClock())
    p.handle(StartEvent(total=4))
    p.handle(ProgressEvent(processed=2, total=4, inserted=1, updated=1))
    bar.set_total.assert_called_once_with(4)
    bar.update_to.assert_called_with(2)
    bar.set_postfix.assert_called_with(ins=1, upd=1, err=0)


class TestRowProgressBar:
    def test_disabled_without_tty(self):
        with patch("sheet_sync.services.progress.is_tty_enabled", return_value=False):
            bar = RowProgressBar(10)
            assert bar.enabled is False and bar.pbar is None
            bar.update_to(5)
            bar.set_total(20)
            bar.close()

    def test_enabled_with_tty(self):
        mock_pbar = Mock()
        mock_pbar.n = 0
        with patch("sheet_sync.services.progress.is_tty_enabled", return_value=True), \
             patch("sheet_sync.services.progress.tqdm", return_value=mock_pbar) as mock_tqdm:
            with RowProgressBar(10, description="rows") as bar:
                assert bar.pbar is mock_pbar
                bar.update_to(3)
                mock_pbar.update.assert_called_once_with(3)
            mock_tqdm.assert_called_once_with(
                total=10,
                desc="rows",
                unit="row",
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
            mock_pbar.close.assert_called_once()
