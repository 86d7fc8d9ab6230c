# ===================================== IMPORTS ====================================== #

# Standard Library
from datetime import datetime
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

# 3rd‑party (Rich)
from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

# Local
from contrast_16s import constants

# ==================================== FUNCTIONS ===================================== #

def setup_logging(
    log_dir_path: Optional[Union[str, Path]] = None,
    log_filename: Union[str, None] = None,
    max_file_size: int = 5 * 1024 * 1024,  # 5 MB
    backup_count: int = 3,
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    capture_warnings: bool = True
) -> logging.Logger:
    """
    Configure the package logger with:
      • Rich console output at ``console_level``
      • Rotating DEBUG log file under ``log_dir_path`` (skipped when None)
      • Library warnings (e.g. constant-input warnings from SciPy's
        correlation routines) routed through the same handlers
    """
    logger = logging.getLogger(constants.LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    warnings_logger = logging.getLogger("py.warnings")

    # Remove existing handlers to avoid duplicates
    for log in (logger, warnings_logger):
        for handler in log.handlers[:]:
            log.removeHandler(handler)

    # ───────────────────────── FILE HANDLER ───────────────────
    log_file_path = None
    if log_dir_path is not None:
        log_dir_path = Path(log_dir_path)
        log_dir_path.mkdir(parents=True, exist_ok=True)
        if log_filename is None:
            log_filename = datetime.now().strftime("%Y-%m-%d_%H%M%S.log")
        log_file_path = log_dir_path / log_filename

        file_handler = RotatingFileHandler(
            filename=log_file_path,
            maxBytes=max_file_size,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(file_level)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s:%(filename)s:%(funcName)s(): %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        logger.addHandler(file_handler)

    # ────────────────────── CONSOLE HANDLER ────────────────────
    console = Console(theme=Theme({
        "logging.level.info": "bold white",
        "logging.level.debug": "dim cyan",
        "logging.level.warning": "bold yellow",
        "logging.level.error": "bold red",
        "logging.level.critical": "reverse bold bright_white on red",
    }))
    rich_handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        level=console_level,
        show_time=True,
        show_level=True,
        show_path=False,
        markup=False,
        log_time_format="[%X]",
    )
    rich_handler.setFormatter(logging.Formatter("%(message)s", datefmt="%H:%M:%S"))
    logger.addHandler(rich_handler)

    logging.captureWarnings(capture_warnings)
    if capture_warnings:
        for handler in logger.handlers:
            warnings_logger.addHandler(handler)
        warnings_logger.propagate = False

    if log_file_path is not None:
        logger.info("Logging initialised → %s", log_file_path)
    return logger
