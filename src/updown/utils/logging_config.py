from loguru import logger
import sys
from pathlib import Path

LOG_DIR = Path("logs")


def setup_logging(level: str = "INFO", log_dir: Path = LOG_DIR) -> None:
    """
    Configure Loguru for the bot.

    - Console logs (INFO+ by default)
    - File logs (DEBUG+)
    - Automatic rotation and retention
    """

    log_dir.mkdir(parents=True, exist_ok=True)

    logger.remove()

    logger.add(
        sys.stdout,
        level=level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
               "<level>{level}</level> | "
               "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
               "<level>{message}</level>",
    )

    # File logger
    logger.add(
        log_dir / "updown_bot.log",
        level="DEBUG",
        rotation="5 MB",
        retention="7 days",
        compression="zip",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{function}:{line} | {message}",
    )
