# updown/utils/bot_config.py
import math
import os
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Callable, Mapping

from updown.errors import ConfigurationError, MissingEnvironmentError


@dataclass(frozen=True)
class BotConfig:
    # Identity
    chain: str = "base"

    # Loop
    poll_interval_ms: int = 2000
    call_timeout_sec: float = 10.0

    # Sizing
    trade_pct: float = 0.25
    min_trade_usd: float = 25.0

    # Execution
    slippage_bps: int = 30
    safe_mode: bool = True

    # Breakout
    break_buffer_bps: int = 10
    cooldown_sec: int = 15
    max_price_deviation_pct: float = 1.0

    @property
    def bot_id(self) -> str:
        return f"updown_{self.chain.lower()}"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


DEFAULT_CONFIG = BotConfig()

REQUIRED_ENV = ("PRIVATE_KEY", "RPC_URL")

_ENV_FIELDS = {
    "chain": ("CHAIN", str),
    "poll_interval_ms": ("POLL_INTERVAL_MS", int),
    "call_timeout_sec": ("CALL_TIMEOUT_SEC", float),
    "trade_pct": ("TRADE_PCT", float),
    "min_trade_usd": ("MIN_TRADE_USD", float),
    "slippage_bps": ("SLIPPAGE_BPS", int),
    "break_buffer_bps": ("BREAK_BUFFER_BPS", int),
    "cooldown_sec": ("COOLDOWN_SEC", int),
    "max_price_deviation_pct": ("MAX_PRICE_DEVIATION_PCT", float),
}


# (field, accepts, message). Non-numeric and non-finite values are rejected first.
_BOUNDS: tuple[tuple[str, Callable[[float], bool], str], ...] = (
    ("poll_interval_ms", lambda v: v >= 1000, "poll_interval_ms must be at least 1000ms"),
    ("trade_pct", lambda v: 0 < v <= 1, "trade_pct must be in (0, 1]"),
    ("min_trade_usd", lambda v: v > 0, "min_trade_usd must be positive"),
    ("slippage_bps", lambda v: 1 <= v <= 10000, "slippage_bps must be between 1 and 10000"),
    ("break_buffer_bps", lambda v: 0 <= v <= 10000, "break_buffer_bps must be between 0 and 10000"),
    ("cooldown_sec", lambda v: v >= 0, "cooldown_sec must be non-negative"),
    ("max_price_deviation_pct", lambda v: v > 0, "max_price_deviation_pct must be positive"),
    ("call_timeout_sec", lambda v: v > 0, "call_timeout_sec must be positive"),
)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check(config: BotConfig) -> list[tuple[str, str]]:
    problems: list[tuple[str, str]] = []

    if not isinstance(config.chain, str) or not config.chain.strip():
        problems.append(("chain", "chain must be a non-empty string"))

    if not isinstance(config.safe_mode, bool):
        problems.append(("safe_mode", "safe_mode must be a boolean"))

    for name, accepts, message in _BOUNDS:
        value = getattr(config, name)
        if not _is_number(value):
            problems.append((name, f"{name} must be a number, got {value!r}"))
        elif not math.isfinite(value):
            problems.append((name, f"{name} must be finite, got {value!r}"))
        elif not accepts(value):
            problems.append((name, message))

    return problems


def validate_config(config: BotConfig) -> list[str]:
    """
    Return one message per violated bound, empty when the config is valid.
    Every message starts with the name of the offending field.
    """
    return [message for _, message in _check(config)]


def invalid_fields(config: BotConfig) -> set[str]:
    return {name for name, _ in _check(config)}


def ensure_valid(config: BotConfig) -> BotConfig:
    problems = _check(config)
    if problems:
        raise ConfigurationError(
            [message for _, message in problems],
            {name for name, _ in problems},
        )
    return config


def merge_config(config: BotConfig, partial: Mapping[str, Any]) -> BotConfig:
    """
    Apply a partial update and validate the result.
    Unknown keys are rejected; nothing is applied unless the whole
    merged config validates.
    """
    known = {f.name for f in fields(BotConfig)}
    unknown = sorted(set(partial) - known)
    if unknown:
        raise ConfigurationError(
            [f"{name} is not a configurable parameter" for name in unknown],
            set(unknown),
        )

    return ensure_valid(replace(config, **dict(partial)))


def config_from_dict(data: Mapping[str, Any]) -> BotConfig:
    return merge_config(DEFAULT_CONFIG, data)


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() == "true"


def config_from_env(environ: Mapping[str, str] | None = None) -> BotConfig:
    env = os.environ if environ is None else environ
    values: dict[str, Any] = {}

    for name, (var, cast) in _ENV_FIELDS.items():
        raw = env.get(var)
        if raw is None or raw == "":
            continue
        try:
            values[name] = cast(raw)
        except ValueError as e:
            raise ConfigurationError([f"{name} has an invalid value {raw!r}"], {name}) from e

    raw_safe = env.get("SAFE_MODE")
    if raw_safe is not None and raw_safe != "":
        values["safe_mode"] = _parse_bool(raw_safe)

    return config_from_dict(values)


def validate_environment(environ: Mapping[str, str] | None = None) -> list[str]:
    env = os.environ if environ is None else environ
    return [f"{var} is required" for var in REQUIRED_ENV if not env.get(var)]


def require_environment(environ: Mapping[str, str] | None = None) -> None:
    errors = validate_environment(environ)
    if errors:
        raise MissingEnvironmentError(errors)
