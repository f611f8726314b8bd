# updown/cli.py
import argparse
import os
import time
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

from updown.config.bot_config_store import load_config
from updown.config.config_store import ConfigStore
from updown.errors import ConfigurationError, MissingEnvironmentError
from updown.persistence.db import build_engine, build_session_factory, init_db
from updown.providers.chain import NATIVE_TOKEN, ChainClient, WalletBalanceSource, get_chain
from updown.providers.price_oracle import UniswapV3PriceOracle
from updown.providers.uniswap import UniswapV3Router, Web3PoolReader
from updown.reporting.trade_reporter import TradeReporter
from updown.repository.state_repository import SqlStateStore
from updown.service.bot_service import BotService
from updown.service.bot_state import BotState
from updown.service.breakout_engine import BreakoutEngine
from updown.service.trade_executor import TradeExecutor
from updown.state.trade_state import JsonStateStore, StateStore
from updown.utils.bot_config import BotConfig, config_from_env, require_environment
from updown.utils.logging_config import setup_logging


def build_state_store(bot_id: str) -> StateStore:
    if os.getenv("STATE_BACKEND", "sql").lower() == "json":
        return JsonStateStore(bot_id)

    engine = build_engine()
    init_db(engine)
    return SqlStateStore(build_session_factory(engine), bot_id)


def load_initial_state(store: StateStore, bot_id: str) -> BotState:
    state = store.load()
    if state is None:
        logger.info("No persisted state for {}, starting from defaults", bot_id)
        return BotState(bot_id=bot_id)

    # A fresh process is never running until start() says so
    state.is_running = False
    logger.info(
        "🔁 Resumed state | mode={} | high={} | low={} | trades={}",
        state.mode.value,
        state.last_high,
        state.last_low,
        state.stats.trade_count,
    )
    return state


def resolve_config() -> BotConfig:
    config = config_from_env()
    persisted = load_config(config.bot_id)
    if persisted is not None:
        logger.info("Using persisted config overrides for {}", config.bot_id)
        return persisted
    return config


def build_service() -> BotService:
    """
    Wire the bot from the environment.
    Raises MissingEnvironmentError / ConfigurationError before anything starts.
    """
    require_environment()
    config = resolve_config()
    chain = get_chain(config.chain)

    client = ChainClient.connect(
        os.environ["RPC_URL"],
        os.environ["PRIVATE_KEY"],
        request_timeout=config.call_timeout_sec,
    )

    config_store = ConfigStore(config)
    state_store = build_state_store(config.bot_id)

    oracle = UniswapV3PriceOracle(
        Web3PoolReader(client, chain),
        volatile_token=chain.weth,
        stable_token=chain.usdc,
        timeout=config.call_timeout_sec,
    )
    executor = TradeExecutor(
        venue=UniswapV3Router(client, chain),
        wallet_address=client.address,
        volatile_token=NATIVE_TOKEN,
        stable_token=chain.usdc,
    )
    engine = BreakoutEngine(
        config_store=config_store,
        price_source=oracle,
        balance_source=WalletBalanceSource(client, chain),
        executor=executor,
        state_store=state_store,
        wallet_address=client.address,
        reporter=TradeReporter(),
        initial_state=load_initial_state(state_store, config.bot_id),
    )
    return BotService(engine, config_store)


def _print_status(service: BotService) -> None:
    state = service.get_state()
    config = service.get_config()
    print(f"Bot: {state.bot_id} ({'RUNNING' if state.is_running else 'STOPPED'})")
    print(f"Mode: {state.mode.value}")
    print(f"Last high: {state.last_high if state.last_high is not None else 'Not set'}")
    print(f"Last low: {state.last_low if state.last_low is not None else 'Not set'}")
    if state.cooldown_until and state.cooldown_until > time.time():
        print(f"Cooldown: {int(state.cooldown_until - time.time()) + 1}s remaining")
    print(f"Trades: {state.stats.trade_count}")
    print(f"Realized PnL: {state.stats.realized_pnl_stable:.2f}")
    print("Config:")
    for key, value in config.to_dict().items():
        print(f"  {key} = {value}")


def main(argv: list[str] | None = None) -> int:
    """
    Application entrypoint.
    Responsibilities:
    - Load environment variables
    - Setup logging
    - Wire providers and services
    - Run the breakout loop (or a single tick / status dump)
    """
    parser = argparse.ArgumentParser(description="Single-pair breakout switching bot.")
    parser.add_argument(
        "command",
        nargs="?",
        default="run",
        choices=("run", "tick", "status"),
        help="run the loop (default), evaluate one tick, or print the current status",
    )
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args(argv)

    # =========================
    # ENV & LOGGING
    # =========================
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=True)
    setup_logging(args.log_level)

    try:
        service = build_service()
    except (MissingEnvironmentError, ConfigurationError) as e:
        logger.error("❌ {}", e)
        return 2

    if args.command == "status":
        _print_status(service)
        return 0

    if args.command == "tick":
        outcome = service.tick_once()
        print(outcome)
        return 0

    # =========================
    # START
    # =========================
    service.start()
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.warning("CTRL+C received. Stopping bot...")
        service.stop()

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
