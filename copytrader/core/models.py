from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Tuple, Union


class Side(str, Enum):
    BUY = "BUY"
    SELL = "SELL"

    @classmethod
    def parse(cls, value: Union[str, "Side"]) -> "Side":
        """接受任意大小寫與前後空白的字串 (例如 " buy ")。"""
        if isinstance(value, Side):
            return value
        return cls(str(value).strip().upper())


class TradingMode(str, Enum):
    SMART_WALLET = "SMART-WALLET"
    DEMO = "DEMO"


@dataclass(frozen=True)
class RawLog:
    """HyperSync 回傳的原始 log，欄位皆已轉為小寫字串 / int。"""
    address: str
    topics: Tuple[str, ...]
    data: str
    transaction_hash: str
    block_number: int


@dataclass(frozen=True)
class RawTransaction:
    hash: str
    sender: str


@dataclass(frozen=True)
class RawBlock:
    number: int
    timestamp: int


@dataclass(frozen=True)
class EnrichedSwap:
    """log 與其所屬交易的配對結果。transaction 為 None 表示來源未知。"""
    log: RawLog
    transaction: Optional[RawTransaction]
    block_number: int
    timestamp: int

    @property
    def origin_address(self) -> Optional[str]:
        if self.transaction is None or not self.transaction.sender:
            return None
        return self.transaction.sender.lower()


@dataclass(frozen=True)
class PoolConfig:
    """
    池子精度設定。
    Uniswap V3 的 amount 與價格皆以 token0 / token1 表示，
    base_is_token0 決定哪一邊是 base asset (預設 token1，例如 USDC/WETH 池中的 WETH)。
    """
    base_decimals: int = 18
    quote_decimals: int = 6
    base_is_token0: bool = False


@dataclass(frozen=True)
class DecodedSwap:
    sender: str
    recipient: str
    amount0: int
    amount1: int
    sqrt_price_x96: int
    liquidity: int
    tick: int


@dataclass(frozen=True)
class Trade:
    """
    核心交易模型 (Domain Model)。
    由一筆 EnrichedSwap 推導而來，方向以交易者角度表示。
    """
    side: Side
    base_quantity: Decimal
    quote_quantity: Decimal
    price: Decimal
    origin_address: Optional[str]  # None = 找不到對應交易 (join miss)
    pool_address: str
    tx_hash: str
    block_number: int
    timestamp: int = 0


@dataclass(frozen=True)
class DecodeFailure:
    tx_hash: str
    pool_address: str
    reason: str


@dataclass(frozen=True)
class FilterDecision:
    is_signal: bool
    is_visible: bool


@dataclass(frozen=True)
class Position:
    side: Side
    base_quantity: Decimal
    quote_value: Decimal
    entry_price: Decimal
    opened_at: float
    pool_address: str = ""
    tx_hash: str = ""
    origin_address: Optional[str] = None


@dataclass(frozen=True)
class UnrealizedPnl:
    fraction: Decimal
    quote: Decimal


@dataclass(frozen=True)
class ClosedTrade:
    """已平倉紀錄，append-only。"""
    sequence_id: int
    side: Side
    base_quantity: Decimal
    quote_value: Decimal
    entry_price: Decimal
    opened_at: float
    exit_price: Decimal
    closed_at: float
    realized_pnl_fraction: Decimal
    realized_pnl_quote: Decimal
    duration_seconds: int
    pool_address: str = ""
    tx_hash: str = ""
    origin_address: Optional[str] = None

    def is_profit(self) -> bool:
        return self.realized_pnl_fraction > 0


@dataclass
class Account:
    """
    模擬帳戶。整個程序只有一個實例，只由 PositionEngine 修改。
    balance == initial_balance + sum(realized_pnl_quote)
    """
    balance: Decimal
    initial_balance: Decimal
    closed_trades: List[ClosedTrade] = field(default_factory=list)
    open_position: Optional[Position] = None

    @classmethod
    def fresh(cls, initial_balance: Decimal) -> "Account":
        return cls(balance=initial_balance, initial_balance=initial_balance)
