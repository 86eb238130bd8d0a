"""Logging setup for pktlog."""

import logging


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """Configure and return the pktlog logger."""
    logger = logging.getLogger("pktlog")
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("[%(levelname)s] %(name)s: %(message)s")
        )
        logger.addHandler(handler)

    return logger
