"""Unit tests for logger.py"""

import logging

from pktlog.logger import setup_logging


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_returns_named_logger(self):
        """Test function returns the pktlog logger."""
        logger = setup_logging()
        assert isinstance(logger, logging.Logger)
        assert logger.name == "pktlog"

    def test_levels(self):
        """Test default and custom log levels are applied."""
        assert setup_logging().level == logging.INFO
        assert setup_logging(level=logging.DEBUG).level == logging.DEBUG

    def test_no_duplicate_handlers(self):
        """Test repeated setup keeps a single stream handler."""
        logging.getLogger("pktlog").handlers.clear()

        setup_logging()
        setup_logging()

        handlers = logging.getLogger("pktlog").handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.StreamHandler)
        assert handlers[0].formatter._fmt == "[%(levelname)s] %(name)s: %(message)s"
