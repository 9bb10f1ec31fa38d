import logging
import os
from contextvars import ContextVar
from logging.handlers import RotatingFileHandler

from tokbox.config.settings import settings

NO_ANALYSIS_ID = "-"

# Set by the orchestrator for the duration of one analysis run
analysis_id_var: ContextVar[str] = ContextVar("analysis_id", default=NO_ANALYSIS_ID)


class AnalysisIdFilter(logging.Filter):
    """Stamps each record with the id of the analysis being run, so one run's
    stage logs can be grepped out of interleaved concurrent requests"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.analysis_id = analysis_id_var.get()
        return True


def setup_logger(name: str) -> logging.Logger:
    """Set up the tokbox logger with console and optional rotating file handlers"""

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    # Avoid adding multiple handlers
    if logger.handlers:
        return logger

    analysis_filter = AnalysisIdFilter()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.addFilter(analysis_filter)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(levelname)s - [%(analysis_id)s] %(message)s'
    ))
    logger.addHandler(console_handler)

    if settings.log_file:
        try:
            log_dir = os.path.dirname(settings.log_file)
            if log_dir and not os.path.exists(log_dir):
                os.makedirs(log_dir)

            # 10MB max, 5 backups
            file_handler = RotatingFileHandler(
                settings.log_file,
                maxBytes=10 * 1024 * 1024,
                backupCount=5
            )
            file_handler.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
            file_handler.addFilter(analysis_filter)
            file_handler.setFormatter(logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - [%(analysis_id)s] %(filename)s:%(lineno)d - %(message)s'
            ))
            logger.addHandler(file_handler)

        except OSError as e:
            logger.error(f"Failed to create file handler: {e}")

    return logger
