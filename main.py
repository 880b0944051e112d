"""Main entry point for the FMCD dashboard."""

import logging
import os
import sys
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from config import DashboardConfig
from core.errors import ConfigurationError


def setup_logging(level: str = "INFO", log_file: str = "fmcd-dashboard.log") -> None:
    """Setup logging configuration.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: File that receives a copy of the log
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file),
        ],
    )


def run() -> int:
    """Load configuration and serve the API.

    Returns:
        Exit code
    """
    logger = logging.getLogger(__name__)

    try:
        config = DashboardConfig.from_env()
        config.validate()
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    # Imported late so the module-level app sees the loaded environment
    from api.main import create_app

    try:
        uvicorn.run(
            create_app(config=config),
            host=config.api_host,
            port=config.api_port,
            log_level=config.log_level.lower(),
        )
        return 0
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1


def main() -> None:
    """Main entry point."""
    env_path = Path(".env")
    if env_path.exists():
        load_dotenv(env_path)

    setup_logging(
        os.getenv("LOG_LEVEL", "INFO"),
        os.getenv("LOG_FILE", "fmcd-dashboard.log"),
    )

    logger = logging.getLogger(__name__)
    logger.info("Starting FMCD dashboard...")

    sys.exit(run())


if __name__ == "__main__":
    main()
