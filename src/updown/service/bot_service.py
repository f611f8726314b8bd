import threading
from pathlib import Path
from typing import Any, Mapping, Optional

from loguru import logger

from updown.config.bot_config_store import CONFIG_DIR, save_config
from updown.config.config_store import ConfigStore
from updown.errors import ConfigurationError
from updown.service.bot_state import BotState, TradeOutcome
from updown.service.breakout_engine import BreakoutEngine
from updown.service.scheduler import TickScheduler
from updown.utils.bot_config import BotConfig


class BotService:
    """
    Control surface of the breakout bot: start/stop the loop, read
    snapshots and update the config. Safe to call from any thread.
    """

    def __init__(
        self,
        engine: BreakoutEngine,
        config_store: ConfigStore,
        config_dir: Optional[Path] = CONFIG_DIR,
        join_timeout: float = 10.0,
    ):
        self.engine = engine
        self.config_store = config_store
        self.config_dir = config_dir
        self.join_timeout = join_timeout

        self._scheduler: Optional[TickScheduler] = None
        self._lifecycle_lock = threading.Lock()

        logger.info("🧠 BotService initialized")

    # =========================
    # BOT LIFECYCLE
    # =========================
    def start(self) -> bool:
        """Start the loop. Returns False when it was already running."""
        with self._lifecycle_lock:
            if self._scheduler is not None:
                logger.warning("Bot is already running")
                return False

            config = self.config_store.get()
            logger.info(
                "🚀 Starting bot | chain={} | interval={}ms | safe_mode={}",
                config.chain,
                config.poll_interval_ms,
                config.safe_mode,
            )

            scheduler = TickScheduler(
                tick=self.engine.tick,
                interval_seconds=lambda: self.config_store.get().poll_interval_ms / 1000,
            )
            self.engine.set_running(True)
            scheduler.start()
            self._scheduler = scheduler
            return True

    def stop(self) -> bool:
        """Stop the loop. Returns False when it was not running."""
        with self._lifecycle_lock:
            scheduler = self._scheduler
            if scheduler is None:
                return False

            logger.warning("🛑 Stopping bot")
            scheduler.stop()
            scheduler.join(timeout=self.join_timeout)
            if scheduler.is_alive():
                logger.warning("Scheduler did not exit within {}s", self.join_timeout)

            self._scheduler = None
            self.engine.set_running(False)
            return True

    def tick_once(self) -> Optional[TradeOutcome]:
        return self.engine.tick()

    # =========================
    # SNAPSHOTS / CONFIG
    # =========================
    def get_state(self) -> BotState:
        return self.engine.snapshot()

    def get_config(self) -> BotConfig:
        return self.config_store.get()

    def update_config(self, partial: Mapping[str, Any]) -> Optional[ConfigurationError]:
        """
        Validate-then-swap. Returns the rejection instead of raising so
        callers on the control surface can report it; the previous
        config stays in effect.

        The chain is fixed for the life of the process (it names the bot,
        its state row and its config file); change CHAIN and restart instead.
        """
        current = self.config_store.get()
        if "chain" in partial and partial["chain"] != current.chain:
            error = ConfigurationError(
                [f"chain cannot be changed at runtime (running on {current.chain!r})"],
                {"chain"},
            )
            logger.warning("Rejected config update | {}", error)
            return error

        try:
            updated = self.config_store.update(partial)
        except ConfigurationError as e:
            logger.warning("Rejected config update | {}", e)
            return e

        if self.config_dir is not None:
            save_config(updated, self.config_dir)
        return None
