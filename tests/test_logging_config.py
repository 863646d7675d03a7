import logging

from warpfield.logging_config import PACKAGE_LOGGERS, setup_logging


def test_setup_logging_writes_to_file(tmp_path):
    log_file = tmp_path / "warp.log"
    try:
        setup_logging(logging.DEBUG, log_file=str(log_file))
        logging.getLogger("fusion.session").debug("frame done")
        for name in PACKAGE_LOGGERS:
            logger = logging.getLogger(name)
            assert logger.level == logging.DEBUG
            assert len(logger.handlers) == 2
            for handler in logger.handlers:
                handler.flush()
        text = log_file.read_text(encoding="utf-8")
        assert "Logging initialized." in text
        assert "fusion.session - DEBUG - frame done" in text
    finally:
        for name in PACKAGE_LOGGERS:
            logger = logging.getLogger(name)
            for handler in list(logger.handlers):
                handler.close()
            logger.handlers.clear()
            logger.setLevel(logging.NOTSET)


def test_setup_logging_twice_does_not_duplicate_handlers():
    try:
        setup_logging()
        setup_logging()
        assert len(logging.getLogger("warpfield").handlers) == 1
    finally:
        for name in PACKAGE_LOGGERS:
            logging.getLogger(name).handlers.clear()
            logging.getLogger(name).setLevel(logging.NOTSET)
