import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

from readaloud.logging_handlers import DateStampedFileHandler, cleanup_old_logs


def _age(path: Path, delta: timedelta) -> None:
    stamp = (datetime.now(timezone.utc) - delta).timestamp()
    os.utime(path, (stamp, stamp))


def test_date_stamped_file_handler_creates_expected_path(tmp_path) -> None:
    current = datetime(2024, 5, 26, 12, 34, 56, tzinfo=timezone.utc)
    handler = DateStampedFileHandler(
        tmp_path / "sessions",
        prefix="readaloud",
        current_time=current,
    )
    try:
        expected_dir = (tmp_path / "sessions" / "2024-05-26").resolve()
        expected_file = expected_dir / "readaloud_2024-05-26_08-34-56_EDT.log"
        file_path = Path(handler.baseFilename)
        assert file_path == expected_file
        assert file_path.exists()

        record = logging.LogRecord(
            name="readaloud.test",
            level=logging.INFO,
            pathname=__file__,
            lineno=0,
            msg="paragraph 1 started",
            args=(),
            exc_info=None,
        )
        handler.emit(record)

        assert "paragraph 1 started" in file_path.read_text(encoding="utf-8")
    finally:
        handler.close()


def test_handler_uses_local_date_for_folder(tmp_path) -> None:
    # 03:04 UTC on Jan 2 is still Jan 1 in New York
    current = datetime(2023, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    handler = DateStampedFileHandler(tmp_path, prefix="run", current_time=current)
    try:
        expected = (tmp_path / "2023-01-01").resolve() / "run_2023-01-01_22-04-05_EST.log"
        assert Path(handler.baseFilename) == expected
    finally:
        handler.close()


def test_cleanup_old_logs(tmp_path) -> None:
    """Old log files are deleted based on retention hours."""
    log_dir = tmp_path / "logs" / "sessions"
    log_dir.mkdir(parents=True)

    old_file = log_dir / "old_log.log"
    old_file.write_text("old content")
    _age(old_file, timedelta(days=3))

    recent_file = log_dir / "recent_log.log"
    recent_file.write_text("recent content")
    _age(recent_file, timedelta(days=1))

    current_file = log_dir / "current_log.log"
    current_file.write_text("current content")

    files_deleted, errors = cleanup_old_logs([log_dir], retention_hours=48)

    assert files_deleted == 1
    assert errors == 0
    assert not old_file.exists()
    assert recent_file.exists()
    assert current_file.exists()


def test_cleanup_old_logs_disabled(tmp_path) -> None:
    log_dir = tmp_path / "logs"
    log_dir.mkdir()
    old_file = log_dir / "old_log.log"
    old_file.write_text("content")
    _age(old_file, timedelta(days=100))

    assert cleanup_old_logs([log_dir], retention_hours=0) == (0, 0)
    assert old_file.exists()


def test_cleanup_old_logs_removes_empty_date_directories(tmp_path) -> None:
    log_dir = tmp_path / "logs" / "sessions"
    date_dir = log_dir / "2024-01-01"
    date_dir.mkdir(parents=True)
    old_file = date_dir / "old_log.log"
    old_file.write_text("content")
    _age(old_file, timedelta(days=100))

    files_deleted, errors = cleanup_old_logs([log_dir], retention_hours=48)

    assert files_deleted == 1
    assert errors == 0
    assert not date_dir.exists()


def test_cleanup_ignores_missing_directories(tmp_path) -> None:
    assert cleanup_old_logs([tmp_path / "missing"], retention_hours=48) == (0, 0)
