from enum import Enum


class HoldingMode(str, Enum):
    HOLDING_VOLATILE = "HOLDING_VOLATILE"
    HOLDING_STABLE = "HOLDING_STABLE"


class TradeAction(str, Enum):
    BUY_VOLATILE = "BUY_VOLATILE"
    SELL_VOLATILE = "SELL_VOLATILE"
    SKIP = "SKIP"
