import json
import os
import tempfile
from dataclasses import asdict
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional
from copytrader.config.logging import logger
from copytrader.core.exceptions import PersistenceError
from copytrader.core.models import Account, ClosedTrade, Side

DECIMAL_FIELDS = (
    "base_quantity", "quote_value", "entry_price", "exit_price",
    "realized_pnl_fraction", "realized_pnl_quote",
)


def _to_decimal(value: Any) -> Decimal:
    return Decimal(str(value))


class AccountStore:
    """
    帳戶狀態的 JSON 檔案存取。
    格式: {"balance", "initial_balance", "trades": [扁平的 ClosedTrade 欄位]}
    Decimal 以字串寫入；讀取時數字或字串都接受。
    """

    def __init__(self, path: str):
        self.path = path

    @staticmethod
    def trade_to_dict(trade: ClosedTrade) -> Dict[str, Any]:
        raw = asdict(trade)
        raw["side"] = trade.side.value
        for key in DECIMAL_FIELDS:
            raw[key] = str(raw[key])
        return raw

    @staticmethod
    def trade_from_dict(raw: Dict[str, Any]) -> ClosedTrade:
        return ClosedTrade(
            sequence_id=int(raw["sequence_id"]),
            side=Side.parse(raw["side"]),
            base_quantity=_to_decimal(raw["base_quantity"]),
            quote_value=_to_decimal(raw["quote_value"]),
            entry_price=_to_decimal(raw["entry_price"]),
            opened_at=float(raw.get("opened_at", 0)),
            exit_price=_to_decimal(raw["exit_price"]),
            closed_at=float(raw.get("closed_at", 0)),
            realized_pnl_fraction=_to_decimal(raw["realized_pnl_fraction"]),
            realized_pnl_quote=_to_decimal(raw["realized_pnl_quote"]),
            duration_seconds=int(raw.get("duration_seconds", 0)),
            pool_address=raw.get("pool_address", ""),
            tx_hash=raw.get("tx_hash", ""),
            origin_address=raw.get("origin_address"),
        )

    def load(self) -> Optional[Dict[str, Any]]:
        """
        讀取狀態。檔案不存在或損毀時回傳 None，由呼叫端改用初始資金。
        """
        if not os.path.exists(self.path):
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                state = json.load(f)
            if not isinstance(state, dict):
                raise ValueError(f"expected a JSON object, got {type(state).__name__}")
            trades = [self.trade_from_dict(t) for t in state.get("trades") or []]
            balance = _to_decimal(state["balance"])
            initial = (
                _to_decimal(state["initial_balance"]) if state.get("initial_balance") is not None else None
            )
            amounts = [balance, initial] + [getattr(t, key) for t in trades for key in DECIMAL_FIELDS]
            if any(a is not None and not a.is_finite() for a in amounts):
                raise ValueError("non-finite decimal value")
            return {"balance": balance, "initial_balance": initial, "trades": trades}
        except (OSError, ValueError, KeyError, TypeError, InvalidOperation) as e:
            logger.warning(f"Ignoring unreadable account state {self.path}: {e}")
            return None

    def save(self, account: Account):
        """整份重寫；先寫暫存檔再 os.replace，避免中途中斷留下半個檔案。"""
        state = {
            "balance": str(account.balance),
            "initial_balance": str(account.initial_balance),
            "trades": [self.trade_to_dict(t) for t in account.closed_trades],
        }
        directory = os.path.dirname(os.path.abspath(self.path))
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=".account_state.", dir=directory)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(state, f, indent=2)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except OSError as e:
            raise PersistenceError(f"Failed to write account state {self.path}: {e}") from e
