"""
Logging setup for fieldmap runs: console output and an optional log file
under ``log_dir``, plus the banner helpers the orchestration engine uses.
"""

import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
LOG_FILE_NAME = 'fieldmap.log'


def setup_logger(
    name: str = "fieldmap",
    log_file: Optional[Path] = None,
    level: str = "INFO",
    console: bool = True
) -> logging.Logger:
    """
    (Re)configure a logger; earlier handlers are dropped.

    Args:
        name: Logger name; "fieldmap" covers every module logger in the package
        log_file: Append DEBUG and above here (None = no file)
        level: Logger and console level name
        console: Also write to stdout

    Returns:
        The configured logger
    """
    numeric_level = getattr(logging, level.upper())
    logger = logging.getLogger(name)
    logger.setLevel(numeric_level)
    logger.handlers = []

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers = []

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(numeric_level)
        handlers.append(console_handler)

    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def setup_from_config(config: Dict[str, Any]) -> logging.Logger:
    """Configure the package logger from the ``logging`` config section."""
    log_config = config.get('logging', {})
    log_file = None
    if log_config.get('log_to_file', False):
        log_file = Path(config.get('log_dir', 'logs/')) / LOG_FILE_NAME

    return setup_logger(
        log_file=log_file,
        level=log_config.get('level', 'INFO'),
        console=log_config.get('log_to_console', True),
    )


def log_workflow_start(logger: logging.Logger, steps: list) -> None:
    """Log workflow start with its step layout."""
    logger.info("=" * 80)
    logger.info("WORKFLOW START")
    logger.info("=" * 80)
    for i, step in enumerate(steps):
        names = [task.capability_name for task in step]
        logger.info(f"Step {i}: {', '.join(names)}")
    logger.info("=" * 80)


def log_step_results(logger: logging.Logger, step_index: int, results: list) -> None:
    """Log the results of one workflow step."""
    logger.info(f"RESULTS for step {step_index}:")
    for result in results:
        status = "OK  " if result.success else "FAIL"
        logger.info(f"  [{status}] {result.summary}")


def log_workflow_end(logger: logging.Logger, status: str) -> None:
    """Log workflow end."""
    logger.info("=" * 80)
    logger.info(f"WORKFLOW {status}")
    logger.info("=" * 80)
