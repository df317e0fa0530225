from decimal import Decimal
from typing import AbstractSet, Union
from copytrader.core.models import FilterDecision, Side, Trade, TradingMode

Number = Union[Decimal, float, int, str]


def _dec(value: Number) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


class WalletFilter:
    """
    判斷一筆 Trade 是否為可跟單訊號 (signal)，以及是否要顯示在 feed 上。

    SMART_WALLET: 只跟 watch set 裡且數量達 min_size 的交易；
                  watch set 交易一律顯示，其他交易需達 background_show_threshold。
    DEMO:         忽略 watch set，跟所有達 follow 門檻的 BUY；SELL 永遠不是訊號。
    找不到來源交易 (origin 未知) 的 swap 在兩種模式下都不會成為訊號。
    """

    def __init__(self, background_show_threshold: Number = Decimal("0.5")):
        self.background_show_threshold = _dec(background_show_threshold)

    def evaluate(
        self,
        trade: Trade,
        mode: TradingMode,
        watch_set: AbstractSet[str],
        min_size: Number,
        demo_show_threshold: Number,
        demo_follow_threshold: Number,
    ) -> FilterDecision:
        size = trade.base_quantity
        known_origin = trade.origin_address is not None

        if mode == TradingMode.DEMO:
            return FilterDecision(
                is_signal=known_origin and trade.side == Side.BUY and size >= _dec(demo_follow_threshold),
                is_visible=size >= _dec(demo_show_threshold),
            )

        watched = known_origin and trade.origin_address in watch_set
        return FilterDecision(
            is_signal=watched and size >= _dec(min_size),
            is_visible=watched or size >= self.background_show_threshold,
        )
