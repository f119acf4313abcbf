# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
Logging setup for the GPEditor CLI.

The library never configures logging itself (the ``gpedit`` logger only
carries a NullHandler). The CLI calls configure_logging() once at startup
and log_shutdown() on exit.
"""

import json
import logging
import os
import platform
import sys
import time
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from gpeditor import __version__

ROOT_LOGGER = "gpedit"

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def parse_level(level: str) -> int:
    """Convert string level to logging constant"""
    return _LEVELS.get(level.upper(), logging.INFO)


def get_logger(component: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT_LOGGER}.{component}")


def configure_logging(
    level: str = "INFO",
    verbose: bool = False,
    log_dir: Optional[Path] = None,
    file_output: bool = True,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """
    Attach console and rotating file handlers to the ``gpedit`` logger.

    The console only shows warnings unless ``verbose`` is set, so command
    output on stdout stays machine-readable. Calling it again replaces the
    previous handlers.
    """
    logger = logging.getLogger(ROOT_LOGGER)

    for handler in list(logger.handlers):
        if not isinstance(handler, logging.NullHandler):
            logger.removeHandler(handler)
            handler.close()

    logger.setLevel(logging.DEBUG if verbose else parse_level(level))

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(
        logging.Formatter(
            fmt="[%(asctime)s] [%(name)s:%(levelname)s] %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.addHandler(console_handler)

    if file_output:
        if log_dir is None:
            log_dir = Path.home() / ".gpedit" / "logs"
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_dir / "gpedit.log",
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
        except OSError as e:
            logger.warning(f"File logging disabled, cannot write to {log_dir}: {e}")
        else:
            file_handler.setFormatter(
                logging.Formatter(
                    fmt="%(asctime)s | %(name)s | %(levelname)s | %(filename)s:%(lineno)d | %(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                )
            )
            file_handler.setLevel(logging.DEBUG)
            logger.addHandler(file_handler)

    return logger


def log_startup(argv=None):
    logger = logging.getLogger(ROOT_LOGGER)
    logger.info("=== GPEditor CLI Started ===")
    logger.info(f"Version: {__version__}")
    logger.info(f"OS: {platform.platform()}")
    logger.info(f"Python: {platform.python_version()}")
    logger.info(f"Machine: {platform.node()} (pid {os.getpid()})")
    logger.info(f"Working Directory: {os.getcwd()}")
    logger.info(f"Command Line: {' '.join(argv if argv is not None else sys.argv)}")


def log_shutdown():
    logger = logging.getLogger(ROOT_LOGGER)
    logger.info("=== GPEditor CLI Shutting Down ===")
    for handler in logger.handlers:
        handler.flush()


def _safe_json(data: Any) -> str:
    try:
        return json.dumps(data, default=str)
    except (TypeError, ValueError):
        return repr(data)


def log_command_start(command: str, parameters: Optional[Dict[str, Any]] = None):
    get_logger("cli").info(f"Command started: {command} with parameters {_safe_json(parameters)}")


def log_command_complete(command: str, success: bool, duration: float, info: str = ""):
    logger = get_logger("cli")
    if success:
        logger.info(f"Command completed: {command} in {duration * 1000:.1f}ms {info}".rstrip())
    else:
        logger.warning(f"Command failed: {command} after {duration * 1000:.1f}ms {info}".rstrip())


def log_gpo_operation(
    operation: str,
    gpo_id: Optional[str] = None,
    gpo_name: Optional[str] = None,
    domain: Optional[str] = None,
    **extra,
):
    get_logger("operations").info(
        f"GPO operation: {operation} | id={gpo_id or '-'} name={gpo_name or '-'} "
        f"domain={domain or 'Local'} {_safe_json(extra) if extra else ''}".rstrip()
    )


def log_error(error: BaseException, context: str, **data):
    logger = get_logger("errors")
    details = getattr(error, "to_dict", None)
    payload = details() if callable(details) else {"type": type(error).__name__, "message": str(error)}
    if data:
        payload["context_data"] = data
    logger.error(f"Error in {context}: {_safe_json(payload)}", exc_info=error)


@contextmanager
def operation_timer(operation: str, component: str = "api"):
    """Log the duration of the enclosed block at debug level"""
    logger = get_logger(component)
    started = time.perf_counter()
    logger.debug(f"{operation} started")
    try:
        yield
    except Exception:
        logger.debug(f"{operation} failed after {(time.perf_counter() - started) * 1000:.1f}ms")
        raise
    logger.debug(f"{operation} completed in {(time.perf_counter() - started) * 1000:.1f}ms")
