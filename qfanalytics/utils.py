"""
utils.py
--------
Logging, timing decorator, and small numerical helpers shared by the
pricing, calibration and credit modules.
"""

import os
import logging
import time
import functools
from datetime import datetime
from pathlib import Path
from typing import Optional

import numpy as np

from qfanalytics.config import DEFAULT_LOGGING_CONFIG


def get_logger(name: str, level: Optional[str] = None,
               log_dir: Optional[str] = None) -> logging.Logger:
    """
    Return a named logger writing to stdout and, optionally, a daily file.

    Parameters
    ----------
    name    : Logger name (typically the module __name__).
    level   : Logging level string ("DEBUG", "INFO", "WARNING", "ERROR").
              Defaults to ``QFA_LOG_LEVEL``.
    log_dir : Directory for log files. Defaults to ``QFA_LOG_DIR``; no file
              handler is attached when neither is set.

    Returns
    -------
    logging.Logger
    """
    logger = logging.getLogger(name)

    if logger.handlers:          # avoid duplicate handlers on re-import
        return logger

    level = level or DEFAULT_LOGGING_CONFIG.level
    log_dir = log_dir or DEFAULT_LOGGING_CONFIG.log_dir
    logger.setLevel(getattr(logging, level.upper(), logging.WARNING))

    fmt = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Console handler
    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    # File handler
    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        log_file = os.path.join(
            log_dir, f"qfanalytics_{datetime.now().strftime('%Y%m%d')}.log"
        )
        fh = logging.FileHandler(log_file)
        fh.setFormatter(fmt)
        logger.addHandler(fh)

    return logger


def timeit(func):
    """Decorator that logs the execution time of any function."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = logging.getLogger(func.__module__)
        t0 = time.perf_counter()
        result = func(*args, **kwargs)
        elapsed = time.perf_counter() - t0
        logger.debug("%s completed in %.3f s", func.__qualname__, elapsed)
        return result
    return wrapper


def epsilon(x: float) -> float:
    """(exp(x) - 1) / x, stable at x = 0."""
    if abs(x) > 1e-5:
        return np.expm1(x) / x
    return 1.0 + x / 2.0 + x * x / 6.0 + x ** 3 / 24.0


def epsilon_p(x: float) -> float:
    """Derivative of ``epsilon``: (x e^x - e^x + 1) / x^2."""
    if abs(x) > 1e-5:
        return (x * np.exp(x) - np.expm1(x)) / (x * x)
    return 0.5 + x / 3.0 + x * x / 8.0 + x ** 3 / 30.0


def is_close(a: float, b: float, tol: float) -> bool:
    """Absolute-tolerance equality used for ATM and boundary tests."""
    return abs(a - b) < tol


def _as_float64(x):
    if isinstance(x, (int, float)) and not isinstance(x, bool):
        return np.float64(x)
    return x


def ieee_float(func):
    """
    Evaluate a scalar formula with IEEE-754 semantics.

    Float arguments are promoted to ``np.float64`` and numpy floating-point
    errors are silenced, so division by zero and overflow yield inf/nan
    which the formula then maps to its limiting value. The result is
    returned as a plain float.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        args = [_as_float64(a) for a in args]
        kwargs = {k: _as_float64(v) for k, v in kwargs.items()}
        with np.errstate(all="ignore"):
            return float(func(*args, **kwargs))
    return wrapper
