import json
from pathlib import Path
from typing import Optional

from loguru import logger

from updown.errors import ConfigurationError
from updown.utils.bot_config import BotConfig, config_from_dict

CONFIG_DIR = Path("configs")


def _ensure_config_dir(config_dir: Path) -> None:
    config_dir.mkdir(parents=True, exist_ok=True)


def config_path(bot_id: str, config_dir: Path = CONFIG_DIR) -> Path:
    return config_dir / f"{bot_id}.json"


def save_config(config: BotConfig, config_dir: Path = CONFIG_DIR) -> None:
    _ensure_config_dir(config_dir)
    payload = config.to_dict()
    with config_path(config.bot_id, config_dir).open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, sort_keys=True)


def load_config(bot_id: str, config_dir: Path = CONFIG_DIR) -> Optional[BotConfig]:
    path = config_path(bot_id, config_dir)
    if not path.exists():
        return None
    with path.open(encoding="utf-8") as f:
        data = json.load(f)

    try:
        return config_from_dict(data)
    except ConfigurationError as e:
        logger.warning("Ignoring persisted config {} | {}", path, e)
        return None
