from __future__ import annotations

import threading
from typing import Any, Mapping

from loguru import logger

from updown.utils.bot_config import BotConfig, ensure_valid, merge_config


class ConfigStore:
    """
    Holds the live BotConfig. Readers always get a complete, validated
    config; updates are validated first and swapped in under the lock.
    """

    def __init__(self, config: BotConfig) -> None:
        self._config = ensure_valid(config)
        self._lock = threading.Lock()

    def get(self) -> BotConfig:
        with self._lock:
            return self._config

    def update(self, partial: Mapping[str, Any]) -> BotConfig:
        with self._lock:
            # Raises ConfigurationError before anything is swapped.
            updated = merge_config(self._config, partial)
            self._config = updated

        logger.info("⚙️ Configuration updated | changes={}", dict(partial))
        return updated
