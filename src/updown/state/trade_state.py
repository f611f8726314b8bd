import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from updown.service.bot_state import BotState

STATE_DIR = Path("state")


class StateStore:
    """Durable home of BotState. load() returns None when nothing was saved yet."""

    def load(self) -> Optional[BotState]:
        raise NotImplementedError

    def save(self, state: BotState) -> None:
        raise NotImplementedError


def _ensure_state_dir(state_dir: Path) -> None:
    state_dir.mkdir(parents=True, exist_ok=True)


def state_path(bot_id: str, state_dir: Path = STATE_DIR) -> Path:
    return state_dir / f"{bot_id}.json"


def save_state(bot_id: str, data: dict, state_dir: Path = STATE_DIR) -> None:
    _ensure_state_dir(state_dir)
    payload = dict(data)
    payload["last_update"] = datetime.now(timezone.utc).isoformat()

    # Atomic replace
    path = state_path(bot_id, state_dir)
    tmp = path.with_suffix(".json.tmp")
    with tmp.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, sort_keys=True)
    tmp.replace(path)


def load_state(bot_id: str, state_dir: Path = STATE_DIR) -> Optional[dict]:
    path = state_path(bot_id, state_dir)
    if not path.exists():
        return None
    with path.open(encoding="utf-8") as f:
        return json.load(f)


class JsonStateStore(StateStore):
    def __init__(self, bot_id: str, state_dir: Path = STATE_DIR) -> None:
        self.bot_id = bot_id
        self.state_dir = Path(state_dir)

    def load(self) -> Optional[BotState]:
        data = load_state(self.bot_id, self.state_dir)
        if data is None:
            return None
        data.pop("last_update", None)
        return BotState.from_dict(data)

    def save(self, state: BotState) -> None:
        save_state(self.bot_id, state.to_dict(), self.state_dir)
