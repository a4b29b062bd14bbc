import logging
from datetime import datetime

from storage_migrator import config
from storage_migrator.logscope import create_log_scope, job_log_handler, scope_dir_name

WHEN = datetime(2024, 3, 5, 7, 8, 9)


def test_scope_dir_name_format():
    assert scope_dir_name("photos", WHEN) == "photos_20240305_070809"


def test_scope_dir_name_sanitizes():
    assert scope_dir_name("my share/2", WHEN) == "my_share_2_20240305_070809"


def test_collisions_get_suffixes(tmp_path):
    first = create_log_scope(tmp_path, "photos", WHEN)
    second = create_log_scope(tmp_path, "photos", WHEN)
    third = create_log_scope(tmp_path, "photos", WHEN)

    assert first.name == "photos_20240305_070809"
    assert second.name == "photos_20240305_070809_1"
    assert third.name == "photos_20240305_070809_2"
    assert all(p.is_dir() for p in (first, second, third))


def test_creates_missing_root(tmp_path):
    root = tmp_path / "nested" / "logs"
    scope = create_log_scope(root, "photos", WHEN)
    assert scope.parent == root


def test_job_log_handler_captures_and_detaches(tmp_path):
    root = logging.getLogger()
    before = list(root.handlers)
    old_level = root.level
    root.setLevel(logging.DEBUG)
    try:
        with job_log_handler(tmp_path) as log_file:
            logging.info("inside the job")
        logging.info("after the job")
    finally:
        root.setLevel(old_level)

    assert log_file == tmp_path / config.JOB_LOG_NAME
    text = log_file.read_text(encoding="utf-8")
    assert "inside the job" in text
    assert "after the job" not in text
    assert root.handlers == before
