from __future__ import annotations

import logging


def get_logger(name: str = "xai_attrib") -> logging.Logger:
    """Configure `name` once with a stream handler. Call it for the package logger only; modules use logging.getLogger(__name__)."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.setLevel(logging.INFO)
        handler = logging.StreamHandler()
        fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s - %(message)s")
        handler.setFormatter(fmt)
        logger.addHandler(handler)
    return logger
