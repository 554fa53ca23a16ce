"""Document normalizer utility modules."""

from .logging_utils import (
    PERFORMANCE_LEVEL,
    ProcessingProgress,
    get_logger,
    log_performance,
    log_stage_timing,
    setup_logging,
)

__all__ = [
    'PERFORMANCE_LEVEL',
    'ProcessingProgress',
    'get_logger',
    'log_performance',
    'log_stage_timing',
    'setup_logging',
]
