"""
Logging utilities with rich console output and stage timing.

Library modules only obtain loggers through :func:`get_logger`; handlers are
installed by :func:`setup_logging`, which the CLI or the host application
calls once.
"""

import logging
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator, Optional, Union

from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

console = Console(stderr=True)

# Custom log levels
PERFORMANCE_LEVEL = 25
logging.addLevelName(PERFORMANCE_LEVEL, "PERFORMANCE")


class NormalizerFormatter(logging.Formatter):
    """Plain-text formatter used when rich output is disabled and for log files."""

    def __init__(self, include_module: bool = True, include_function: bool = False):
        format_parts = ["%(asctime)s"]
        if include_module:
            format_parts.append("%(name)s")
        format_parts.append("%(levelname)s")
        if include_function:
            format_parts.append("%(funcName)s")
        format_parts.append("%(message)s")
        super().__init__(" - ".join(format_parts), datefmt="%Y-%m-%d %H:%M:%S")


def setup_logging(
    level: Union[str, int] = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
    use_rich: bool = True,
    format_style: str = "detailed"
) -> logging.Logger:
    """
    Set up logging for the document normalizer.

    Args:
        level: Logging level
        log_file: Optional log file path
        use_rich: Whether to use rich console output
        format_style: Format style ('simple', 'detailed', 'minimal')

    Returns:
        Configured root logger
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    if isinstance(level, str):
        level = getattr(logging, level.upper())
    root_logger.setLevel(level)

    if use_rich:
        console_handler = RichHandler(
            console=console,
            show_time=True,
            show_path=format_style == "detailed",
            markup=False,
            rich_tracebacks=True
        )
        console_handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        if format_style == "minimal":
            formatter = NormalizerFormatter(include_module=False)
        elif format_style == "simple":
            formatter = NormalizerFormatter(include_module=True)
        else:
            formatter = NormalizerFormatter(include_module=True, include_function=True)
        console_handler.setFormatter(formatter)

    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding='utf-8')
        file_handler.setFormatter(NormalizerFormatter(include_module=True, include_function=True))
        file_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(file_handler)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the specified name.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def log_performance(logger: logging.Logger, message: str, **metrics: Any) -> None:
    """Log a message at PERFORMANCE level with ``key=value`` metrics appended."""
    if metrics:
        extra_info = ", ".join(
            f"{k}={v:.4f}" if isinstance(v, float) else f"{k}={v}" for k, v in metrics.items()
        )
        message = f"{message} ({extra_info})"
    logger.log(PERFORMANCE_LEVEL, message)


@contextmanager
def log_stage_timing(
    stage: str,
    logger: Optional[logging.Logger] = None,
    level: int = logging.DEBUG
) -> Generator[Dict[str, Any], None, None]:
    """
    Context manager that logs the start, duration and failure of a stage.

    Args:
        stage: Name of the stage
        logger: Logger instance (uses root if None)
        level: Logging level for start/finish messages

    Yields:
        Dictionary where the stage can record extra statistics
    """
    if logger is None:
        logger = logging.getLogger()

    stats: Dict[str, Any] = {"stage": stage, "start_time": time.perf_counter()}
    logger.log(level, "Starting %s", stage)

    try:
        yield stats
    except Exception as e:
        duration = time.perf_counter() - stats["start_time"]
        logger.error("Failed %s after %.3fs: %s", stage, duration, e)
        raise

    duration = time.perf_counter() - stats["start_time"]
    stats["duration"] = duration
    extra = {k: v for k, v in stats.items() if k not in ("stage", "start_time", "duration")}
    if extra:
        details = ", ".join(f"{k}={v}" for k, v in extra.items())
        logger.log(level, "Completed %s in %.3fs (%s)", stage, duration, details)
    else:
        logger.log(level, "Completed %s in %.3fs", stage, duration)


class ProcessingProgress:
    """Progress tracking for batch operations."""

    def __init__(self, description: str, total: int, logger: Optional[logging.Logger] = None,
                 enabled: bool = True):
        self.description = description
        self.total = total
        self.logger = logger or logging.getLogger()
        self.start_time = time.time()
        self.completed = 0
        self.failed = 0

        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
            disable=not enabled,
        )
        self.task_id = None

    def __enter__(self) -> 'ProcessingProgress':
        self.progress.__enter__()
        self.task_id = self.progress.add_task(self.description, total=self.total)
        self.logger.info(f"Starting {self.description}: {self.total} items")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.progress.__exit__(exc_type, exc_val, exc_tb)

        duration = time.time() - self.start_time
        success_rate = self.completed / self.total if self.total > 0 else 0

        self.logger.info(
            f"Completed {self.description}: "
            f"{self.completed}/{self.total} successful "
            f"({self.failed} failed) in {duration:.2f}s "
            f"(success rate: {success_rate*100:.1f}%)"
        )

    def update(self, advance: int = 1, success: bool = True) -> None:
        """Update progress and statistics."""
        if self.task_id is not None:
            self.progress.update(self.task_id, advance=advance)

        if success:
            self.completed += advance
        else:
            self.failed += advance
