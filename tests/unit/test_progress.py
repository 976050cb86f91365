from __future__ import annotations

from pathlib import Path
from unittest.mock import Mock, patch

from billing_import.services.progress import ProgressTracker, is_tty_enabled


def test_is_tty_enabled_returns_stdout_isatty():
    with patch("sys.stdout.isatty", return_value=True):
        assert is_tty_enabled() is True
    with patch("sys.stdout.isatty", return_value=False):
        assert is_tty_enabled() is False


def test_tracker_creates_bar_on_tty():
    with patch("billing_import.services.progress.is_tty_enabled", return_value=True), \
         patch("billing_import.services.progress.tqdm") as mock_tqdm:
        tracker = ProgressTracker(3, description="Billing files")
        assert tracker.enabled is True
        mock_tqdm.assert_called_once_with(
            total=3,
            desc="Billing files",
            unit="file",
            leave=True,
            position=0,
            ncols=80,
            ascii=True,
        )


def test_tracker_without_tty_is_silent():
    with patch("billing_import.services.progress.is_tty_enabled", return_value=False):
        with ProgressTracker(2) as tracker:
            tracker.start_file(Path("a.xlsx"))
            tracker.finish_file(success=False)
        assert tracker.pbar is None
        assert tracker.current_file == 1
        assert tracker.failed_files == 1


def test_tracker_updates_bar():
    mock_pbar = Mock()
    with patch("billing_import.services.progress.is_tty_enabled", return_value=True), \
         patch("billing_import.services.progress.tqdm", return_value=mock_pbar):
        tracker = ProgressTracker(2, description="Billing files")
        tracker.start_file(Path("data/a.xlsx"))
        mock_pbar.set_description.assert_called_with("Billing files (a.xlsx)")
        tracker.finish_file(success=False)
        mock_pbar.update.assert_called_once_with(1)
        mock_pbar.set_postfix.assert_called_once_with(failed=1)
        tracker.close()
        mock_pbar.close.assert_called_once()
        assert tracker.pbar is None
