import math
from decimal import Decimal
import pytest
from copytrader.core.models import ClosedTrade, RawBlock, RawLog, RawTransaction, Side, Trade
from copytrader.infrastructure.decoder import SWAP_TOPIC0

USDC_WETH_POOL = "0x8ad599c3a0ff1de082011efddc58f1908eb6e6d8"
SMART_WALLET = "0x56fc0708725a65ebb633efdaec931c0600a9face"
OTHER_WALLET = "0x1111111111111111111111111111111111111111"
ROUTER = "0xe592427a0aece92de3edee1f18e0157c05861564"


def sqrt_price_for(usdc_per_eth: int) -> int:
    """USDC/WETH 池: token0 = USDC (6 位), token1 = WETH (18 位)。"""
    return math.isqrt(2 ** 192 * 10 ** 12 // usdc_per_eth)


def word(value: int, signed: bool = True) -> str:
    return value.to_bytes(32, "big", signed=signed).hex()


def topic_for(address: str) -> str:
    return "0x" + "0" * 24 + address[2:]


def swap_data(amount0: int, amount1: int, sqrt_price: int, liquidity: int = 10 ** 18, tick: int = 0) -> str:
    return "0x" + "".join([
        word(amount0),
        word(amount1),
        word(sqrt_price, signed=False),
        word(liquidity, signed=False),
        word(tick),
    ])


def build_swap_log(amount0: int, amount1: int, sqrt_price: int, tx_hash: str = "0xaa",
                   block: int = 100, pool: str = USDC_WETH_POOL) -> RawLog:
    return RawLog(
        address=pool,
        topics=(SWAP_TOPIC0, topic_for(ROUTER), topic_for(ROUTER)),
        data=swap_data(amount0, amount1, sqrt_price),
        transaction_hash=tx_hash,
        block_number=block,
    )


@pytest.fixture
def make_swap_log():
    return build_swap_log


@pytest.fixture
def make_tx():
    def _make(tx_hash: str, sender: str) -> RawTransaction:
        return RawTransaction(hash=tx_hash, sender=sender)
    return _make


@pytest.fixture
def make_block():
    def _make(number: int, timestamp: int) -> RawBlock:
        return RawBlock(number=number, timestamp=timestamp)
    return _make


@pytest.fixture
def make_trade():
    def _make(side=Side.BUY, base="1", price="3000", origin=SMART_WALLET, quote=None) -> Trade:
        base = Decimal(base)
        price = Decimal(price)
        return Trade(
            side=side,
            base_quantity=base,
            quote_quantity=Decimal(quote) if quote is not None else base * price,
            price=price,
            origin_address=origin,
            pool_address=USDC_WETH_POOL,
            tx_hash="0xaa",
            block_number=100,
        )
    return _make


@pytest.fixture
def make_closed_trade():
    def _make(sequence_id: int, pnl_quote: str, quote_value: str = "1000") -> ClosedTrade:
        pnl = Decimal(pnl_quote)
        value = Decimal(quote_value)
        return ClosedTrade(
            sequence_id=sequence_id,
            side=Side.BUY,
            base_quantity=Decimal("0.5"),
            quote_value=value,
            entry_price=Decimal("2000"),
            opened_at=0.0,
            exit_price=Decimal("2000") * (1 + pnl / value),
            closed_at=120.0,
            realized_pnl_fraction=pnl / value,
            realized_pnl_quote=pnl,
            duration_seconds=120,
            pool_address=USDC_WETH_POOL,
            tx_hash=f"0x{sequence_id:02x}",
        )
    return _make
