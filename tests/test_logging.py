import logging
from pathlib import Path

from unify_build.foundation.logging_utils import setup_logger


def test_file_handler_writes_unicode_with_utf8_encoding(tmp_path: Path):
    log_path = tmp_path / "logs" / "build.log"
    logger = setup_logger("unify_build_test.file", log_path=log_path)

    logger.info("Resolved version → 1.0.0 for café")
    for handler in logger.handlers:
        handler.flush()

    content = log_path.read_text(encoding="utf-8")
    assert "Resolved version → 1.0.0 for café" in content
    assert " | INFO | " in content


def test_repeated_setup_does_not_duplicate_handlers():
    setup_logger("unify_build_test.repeat")
    logger = setup_logger("unify_build_test.repeat", level=logging.WARNING)

    assert len(logger.handlers) == 1
    assert logger.handlers[0].level == logging.WARNING
    assert logger.propagate is False
