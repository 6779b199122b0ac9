from __future__ import annotations

from unittest.mock import Mock, patch

from posprep.services.progress import ProgressTracker, is_tty_enabled, percent


def test_is_tty_enabled_returns_stdout_isatty():
    with patch("sys.stdout.isatty", return_value=True):
        assert is_tty_enabled() is True
    with patch("sys.stdout.isatty", return_value=False):
        assert is_tty_enabled() is False


def test_percent():
    assert percent(1, 4) == 25
    assert percent(3, 3) == 100
    assert percent(0, 0) == 0


def test_init_with_tty_enabled():
    with patch("posprep.services.progress.is_tty_enabled", return_value=True), \
         patch("posprep.services.progress.tqdm") as mock_tqdm:
        tracker = ProgressTracker(5, description="Combining", unit="group")
        assert tracker.enabled is True
        mock_tqdm.assert_called_once_with(
            total=5,
            desc="Combining",
            unit="group",
            disable=False,
            leave=True,
            position=0,
            ncols=80,
            ascii=True,
        )


def test_init_with_tty_disabled():
    with patch("posprep.services.progress.is_tty_enabled", return_value=False):
        tracker = ProgressTracker(5)
        assert tracker.enabled is False
        assert tracker.pbar is None


def test_advance_updates_bar_and_callback():
    mock_pbar = Mock()
    callback = Mock()
    with patch("posprep.services.progress.is_tty_enabled", return_value=True), \
         patch("posprep.services.progress.tqdm", return_value=mock_pbar):
        tracker = ProgressTracker(2, description="Combining", callback=callback)
        tracker.start("group 1")
        mock_pbar.set_description.assert_called_with("Combining (group 1)")
        tracker.advance()
        mock_pbar.update.assert_called_once_with(1)
        callback.assert_called_once_with(1, 2)
        assert tracker.percent == 50


def test_callback_runs_without_tty():
    calls = []
    with patch("posprep.services.progress.is_tty_enabled", return_value=False):
        tracker = ProgressTracker(3, callback=lambda c, t: calls.append((c, t)))
        tracker.advance()
        tracker.advance()
    assert calls == [(1, 3), (2, 3)]


def test_context_manager_closes_bar():
    mock_pbar = Mock()
    with patch("posprep.services.progress.is_tty_enabled", return_value=True), \
         patch("posprep.services.progress.tqdm", return_value=mock_pbar):
        with ProgressTracker(1) as tracker:
            pass
        mock_pbar.close.assert_called_once()
        assert tracker.pbar is None
