import logging
import logging.config
from pathlib import Path
from typing import Optional

import yaml

from ..config.settings import settings

DEFAULT_LOGGING_CONFIG_PATH = Path(settings.LOGGING_CONFIG_PATH)


def setup_logging(
    config_path: Path = DEFAULT_LOGGING_CONFIG_PATH, log_level: Optional[str] = None
) -> None:
    """
    Set up logging configuration from a YAML file.

    Args:
        config_path (Path): Path to the logging configuration YAML file.
        log_level (str): Optional level override for the ``feed_filter`` logger.
    """
    if config_path.exists():
        try:
            with open(config_path, 'rt') as f:
                log_config = yaml.safe_load(f.read())
            logging.config.dictConfig(log_config)
            logging.getLogger(__name__).debug(f"Logging configured from {config_path}")
        except Exception as e:
            logging.basicConfig(level=logging.INFO)  # Basic config as fallback
            logging.error(f"Error loading logging configuration from {config_path}: {e}. Using basicConfig.")
    else:
        logging.basicConfig(level=logging.INFO)
        logging.warning(f"Logging configuration file not found at {config_path}. Using basicConfig.")

    level = log_level or settings.LOG_LEVEL
    logging.getLogger("feed_filter").setLevel(level.upper())
