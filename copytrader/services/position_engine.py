from dataclasses import replace
from decimal import Decimal
from typing import Dict, Optional, Union
from copytrader.config.logging import logger
from copytrader.core.exceptions import PersistenceError
from copytrader.core.models import Account, ClosedTrade, Position, Side, UnrealizedPnl
from copytrader.infrastructure.account_store import AccountStore
from copytrader.services.analytics import AnalyticsService


def pnl_fraction(side: Side, entry_price: Decimal, price: Decimal) -> Decimal:
    """BUY 賺價差上漲，SELL 賺價差下跌。"""
    if side == Side.BUY:
        return (price - entry_price) / entry_price
    return (entry_price - price) / entry_price


class PositionEngine:
    """
    單一部位狀態機：FLAT (open_position is None) / OPEN。
    同時間最多一個部位，由這裡的前置條件保證，不靠呼叫端。
    """

    def __init__(self, account: Account, store: Optional[AccountStore] = None):
        self.account = account
        self.store = store

    @classmethod
    def load(cls, store: Optional[AccountStore], initial_balance: Union[Decimal, float, str]) -> "PositionEngine":
        """從檔案恢復帳戶；讀不到就用初始資金重新開始。"""
        initial = Decimal(str(initial_balance))
        state = store.load() if store else None
        if not state:
            return cls(Account.fresh(initial), store)

        trades = state["trades"]
        if [t.sequence_id for t in trades] != list(range(1, len(trades) + 1)):
            logger.warning("Stored trade ids are not 1..N in order; renumbering by position.")
            trades = [replace(t, sequence_id=i) for i, t in enumerate(trades, 1)]

        stored_initial = initial if state["initial_balance"] is None else state["initial_balance"]
        expected = stored_initial + sum((t.realized_pnl_quote for t in trades), Decimal(0))
        balance = state["balance"]
        if balance != expected:
            logger.warning(
                f"Stored balance {balance} does not match trade history ({expected}); rebuilding from trades."
            )
            balance = expected

        account = Account(balance=balance, initial_balance=stored_initial, closed_trades=list(trades))
        logger.info(f"Loaded account state: balance={balance}, {len(trades)} closed trades")
        return cls(account, store)

    @property
    def is_open(self) -> bool:
        return self.account.open_position is not None

    @property
    def position(self) -> Optional[Position]:
        return self.account.open_position

    def open(
        self,
        side: Union[Side, str],
        base_qty: Decimal,
        quote_qty: Decimal,
        price: Decimal,
        now: float,
        pool_address: str = "",
        tx_hash: str = "",
        origin_address: Optional[str] = None,
    ) -> Optional[Position]:
        if self.account.open_position is not None:
            logger.info(f"Signal dropped: already holding a {self.account.open_position.side.value} position")
            return None
        if price <= 0:
            logger.warning(f"Refusing to open position at non-positive price {price}")
            return None

        position = Position(
            side=Side.parse(side),
            base_quantity=base_qty,
            quote_value=quote_qty,
            entry_price=price,
            opened_at=now,
            pool_address=pool_address,
            tx_hash=tx_hash,
            origin_address=origin_address,
        )
        self.account.open_position = position
        logger.info(f"Opened {position.side.value} {base_qty} @ {price} (value {quote_qty})")
        return position

    def mark_to_market(self, current_price: Decimal) -> Optional[UnrealizedPnl]:
        position = self.account.open_position
        if position is None:
            return None
        fraction = pnl_fraction(position.side, position.entry_price, current_price)
        return UnrealizedPnl(fraction=fraction, quote=fraction * position.quote_value)

    def close(self, exit_price: Decimal, now: float) -> Optional[ClosedTrade]:
        position = self.account.open_position
        if position is None:
            return None

        fraction = pnl_fraction(position.side, position.entry_price, exit_price)
        pnl_quote = fraction * position.quote_value
        trade = ClosedTrade(
            sequence_id=len(self.account.closed_trades) + 1,
            side=position.side,
            base_quantity=position.base_quantity,
            quote_value=position.quote_value,
            entry_price=position.entry_price,
            opened_at=position.opened_at,
            exit_price=exit_price,
            closed_at=now,
            realized_pnl_fraction=fraction,
            realized_pnl_quote=pnl_quote,
            duration_seconds=int(now - position.opened_at),
            pool_address=position.pool_address,
            tx_hash=position.tx_hash,
            origin_address=position.origin_address,
        )

        self.account.closed_trades.append(trade)
        self.account.balance += pnl_quote
        self.account.open_position = None
        logger.info(
            f"Closed trade #{trade.sequence_id} {trade.side.value} @ {exit_price} | "
            f"PnL: {pnl_quote:.2f} ({fraction * 100:.2f}%) | Balance: {self.account.balance:.2f}"
        )
        self._persist()
        return trade

    def check_expiry(self, now: float, hold_duration: float, current_price: Decimal) -> Optional[ClosedTrade]:
        """持有時間到就以最新價格平倉，這是唯一的自動出場條件。"""
        position = self.account.open_position
        if position is None:
            return None
        if now - position.opened_at < hold_duration:
            return None
        return self.close(current_price, now)

    def stats(self) -> Dict:
        return AnalyticsService.calculate_stats(self.account)

    def _persist(self):
        if self.store is None:
            return
        try:
            self.store.save(self.account)
        except PersistenceError as e:
            # 下次平倉會整份重寫，等於自動重試
            logger.error(f"{e}; state will be retried on next close")
