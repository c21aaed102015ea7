from .error_log import LOGS_DIR, ErrorLogBuffer
from .init import SUMMARY_LEVEL, LabeledFormatter, get_logger, log_summary, reset_logging, setup_logging

__all__ = [
    "LOGS_DIR",
    "SUMMARY_LEVEL",
    "ErrorLogBuffer",
    "LabeledFormatter",
    "get_logger",
    "log_summary",
    "reset_logging",
    "setup_logging",
]
