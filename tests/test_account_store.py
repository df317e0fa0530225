import json
from decimal import Decimal
import pytest
from copytrader.core.exceptions import PersistenceError
from copytrader.core.models import Account, Side
from copytrader.infrastructure.account_store import AccountStore


def test_save_and_load(tmp_path, make_closed_trade):
    path = tmp_path / "account_state.json"
    trades = [make_closed_trade(1, "50"), make_closed_trade(2, "-20")]
    account = Account(balance=Decimal("10030"), initial_balance=Decimal("10000"), closed_trades=trades)

    AccountStore(str(path)).save(account)
    state = AccountStore(str(path)).load()

    assert state["balance"] == Decimal("10030")
    assert state["initial_balance"] == Decimal("10000")
    assert state["trades"] == trades


def test_decimals_written_as_strings(tmp_path, make_closed_trade):
    path = tmp_path / "account_state.json"
    account = Account(balance=Decimal("10050.5"), initial_balance=Decimal("10000"),
                      closed_trades=[make_closed_trade(1, "50.5")])

    AccountStore(str(path)).save(account)
    raw = json.loads(path.read_text(encoding="utf-8"))

    assert raw["balance"] == "10050.5"
    assert raw["trades"][0]["realized_pnl_quote"] == "50.5"
    assert raw["trades"][0]["side"] == "BUY"
    # 不會留下暫存檔
    assert [p.name for p in tmp_path.iterdir()] == ["account_state.json"]


def test_load_accepts_numbers_and_lowercase_side(tmp_path):
    path = tmp_path / "account_state.json"
    path.write_text(json.dumps({
        "balance": 10010,
        "trades": [{
            "sequence_id": 1, "side": "sell", "base_quantity": 0.5, "quote_value": 1000,
            "entry_price": 2000, "exit_price": 1980, "realized_pnl_fraction": 0.01,
            "realized_pnl_quote": 10,
        }],
    }), encoding="utf-8")

    state = AccountStore(str(path)).load()

    assert state["balance"] == Decimal("10010")
    assert state["initial_balance"] is None
    assert state["trades"][0].side == Side.SELL
    assert state["trades"][0].realized_pnl_quote == Decimal("10")


def test_missing_file_returns_none(tmp_path):
    assert AccountStore(str(tmp_path / "nope.json")).load() is None


_NAN_TRADE = (
    '{"balance": "10000", "trades": [{"sequence_id": 1, "side": "BUY", "base_quantity": "1", '
    '"quote_value": "1", "entry_price": "1", "exit_price": "1", '
    '"realized_pnl_fraction": "NaN", "realized_pnl_quote": "0"}]}'
)


@pytest.mark.parametrize("content", [
    "", "{broken", '{"trades": []}', '{"balance": "abc"}',
    "[]", "null", '"x"', "42",
    '{"balance": "NaN", "trades": []}',
    '{"balance": "sNaN"}',
    '{"balance": "Infinity"}',
    '{"balance": 1, "trades": ["x"]}',
    _NAN_TRADE,
])
def test_corrupt_file_returns_none(tmp_path, content):
    path = tmp_path / "account_state.json"
    path.write_text(content, encoding="utf-8")
    assert AccountStore(str(path)).load() is None


def test_unwritable_location_raises(tmp_path):
    store = AccountStore(str(tmp_path / "missing_dir" / "account_state.json"))
    with pytest.raises(PersistenceError):
        store.save(Account.fresh(Decimal("10000")))
