from __future__ import annotations

from unittest.mock import MagicMock, patch

from tutor_import.models.outcome import OutcomeKind, RecordOutcome
from tutor_import.services.progress import RecordProgress, is_tty_enabled


def _outcome(kind: OutcomeKind) -> RecordOutcome:
    return RecordOutcome(row_number=1, kind=kind)


def test_is_tty_enabled_follows_stdout():
    with patch("sys.stdout.isatty", return_value=False):
        assert is_tty_enabled() is False
    with patch("sys.stdout.isatty", return_value=True):
        assert is_tty_enabled() is True


def test_disabled_progress_still_counts():
    with RecordProgress(3, enabled=False) as progress:
        assert progress.pbar is None
        progress.update(_outcome(OutcomeKind.SUCCESS))
        progress.update(_outcome(OutcomeKind.PARTIAL))
        progress.update(_outcome(OutcomeKind.ERROR))
    assert (progress.success, progress.partial, progress.failed) == (1, 1, 1)


def test_enabled_progress_updates_bar():
    fake_bar = MagicMock()
    with patch("tutor_import.services.progress.tqdm", return_value=fake_bar) as tqdm_cls:
        progress = RecordProgress(2, enabled=True)
        progress.update(_outcome(OutcomeKind.SUCCESS))
        progress.close()
    assert tqdm_cls.call_args.kwargs["total"] == 2
    assert tqdm_cls.call_args.kwargs["desc"] == "Importing tutors"
    fake_bar.update.assert_called_once_with(1)
    fake_bar.set_postfix.assert_called_once_with(success=1, partial=0, failed=0)
    fake_bar.close.assert_called_once()
    assert progress.pbar is None


def test_default_follows_tty():
    with patch("tutor_import.services.progress.is_tty_enabled", return_value=False):
        assert RecordProgress(1).enabled is False
