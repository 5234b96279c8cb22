import logging
import logging.handlers
import sys
import os
from typing import Optional

from ..config.settings import settings

logger = logging.getLogger(__name__)

def setup_logging(log_level: Optional[str] = None, log_file: Optional[str] = None) -> logging.Logger:

    # Determine log level
    level = log_level or settings.LOG_LEVEL
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Clear existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File handler if specified
    file_path = log_file or settings.LOG_FILE
    if file_path:
        try:
            directory = os.path.dirname(file_path)
            if directory:
                os.makedirs(directory, exist_ok=True)

            # Rotating file handler to prevent huge log files
            file_handler = logging.handlers.RotatingFileHandler(
                file_path, maxBytes=10*1024*1024, backupCount=5
            )
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

            logger.info(f"Logging to file: {file_path}")

        except OSError as e:
            logger.warning(f"Failed to setup file logging: {e}")

    # urllib3 is noisy at DEBUG for every connection
    logging.getLogger('urllib3').setLevel(max(numeric_level, logging.INFO))

    logger.info(f"Logging initialized - Level: {level}")
    return root_logger

def validate_configuration() -> bool:
    logger.info("Validating configuration...")

    errors = settings.validate_config()
    if errors:
        logger.error("Configuration validation failed:")
        for error in errors:
            logger.error(f"  - {error}")
        return False

    logger.info("Configuration validation passed")
    return True

# Cabecera de la trama en hexadecimal para depuración
def hex_preview(data: bytes, limit: int = 64) -> str:
    preview = data[:limit].hex()
    if len(data) > limit:
        preview += f"... ({len(data)} bytes)"
    return preview
