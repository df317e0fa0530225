import threading
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Dict, FrozenSet, List, Optional, Protocol
from copytrader.config.logging import logger
from copytrader.core.exceptions import ProviderError
from copytrader.core.models import ClosedTrade, DecodeFailure, Side, Trade, TradingMode
from copytrader.infrastructure.decoder import SWAP_TOPIC0
from copytrader.infrastructure.hypersync.client import build_query
from copytrader.infrastructure.hypersync.mapper import QueryResponse
from copytrader.services.classifier import SwapClassifier
from copytrader.services.control import FeedBuffer, ModeSwitch
from copytrader.services.joiner import EventJoiner
from copytrader.services.pacer import Pacer
from copytrader.services.position_engine import PositionEngine
from copytrader.services.report_formatter import ReportFormatter
from copytrader.services.wallet_filter import WalletFilter

SUMMARY_INTERVAL_SECONDS = 10.0
HEARTBEAT_BLOCKS = 10


class Provider(Protocol):
    def get_height(self) -> int: ...

    def get(self, query: Dict) -> QueryResponse: ...


@dataclass(frozen=True)
class StrategyConfig:
    watch_set: FrozenSet[str]
    min_trade_size: Decimal
    hold_duration: float
    demo_show_threshold: Decimal
    demo_follow_threshold: Decimal
    start_blocks_back: int
    pools: List[str] = field(default_factory=list)
    clock_source: str = "monotonic"  # "monotonic" | "chain"


@dataclass
class LoopCursor:
    from_block: int
    chain_height: int = 0


@dataclass
class LoopStats:
    batches: int = 0
    total_blocks: int = 0
    total_swaps: int = 0
    matched_swaps: int = 0
    decode_failures: int = 0
    join_misses: int = 0


class IngestionLoop:
    """
    主迴圈：向 provider 查詢 [from_block, tip]，
    將每一批資料依序送過 EventJoiner → SwapClassifier → WalletFilter → PositionEngine，
    然後推進 cursor，並依是否追上鏈頭決定休息多久。

    只在兩個地方暫停：等待 provider 回應，以及 pacer 的 sleep。
    stop_event 在每一輪開頭檢查，sleep 也用 stop_event.wait，所以關閉很快。
    """

    def __init__(
        self,
        provider: Provider,
        engine: PositionEngine,
        config: StrategyConfig,
        classifier: Optional[SwapClassifier] = None,
        wallet_filter: Optional[WalletFilter] = None,
        mode_switch: Optional[ModeSwitch] = None,
        feed: Optional[FeedBuffer] = None,
        stop_event: Optional[threading.Event] = None,
        pacer: Optional[Pacer] = None,
        clock: Callable[[], float] = time.monotonic,
        on_close: Optional[Callable[[ClosedTrade], None]] = None,
    ):
        self.provider = provider
        self.engine = engine
        self.config = config
        self.classifier = classifier or SwapClassifier()
        self.wallet_filter = wallet_filter or WalletFilter()
        self.mode_switch = mode_switch or ModeSwitch()
        self.feed = feed or FeedBuffer()
        self.stop_event = stop_event or threading.Event()
        self.pacer = pacer or Pacer(sleep=self.stop_event.wait)
        self.clock = clock
        self.on_close = on_close

        self.cursor: Optional[LoopCursor] = None
        self.stats = LoopStats()
        self.last_prices: Dict[str, Decimal] = {}
        self.chain_time = 0
        self._last_summary = clock()

    # ---- time ----

    def now(self) -> float:
        if self.config.clock_source == "chain":
            return float(self.chain_time)
        return self.clock()

    def last_price(self, pool_address: str) -> Optional[Decimal]:
        return self.last_prices.get(pool_address.lower())

    # ---- lifecycle ----

    def start(self) -> LoopCursor:
        height = self.provider.get_height()
        from_block = max(0, height - self.config.start_blocks_back)
        self.cursor = LoopCursor(from_block=from_block, chain_height=height)
        logger.info(f"Chain height {height}, starting from block {from_block}")
        for line in ReportFormatter.format_startup(
            from_block, height, len(self.config.watch_set), self.config.min_trade_size,
            self.config.hold_duration, self.mode_switch.current(),
        ):
            self.feed.push(line)
        return self.cursor

    def run(self, max_iterations: Optional[int] = None):
        """持續執行直到 stop_event 被設定 (或達到 max_iterations，測試用)。"""
        iteration = 0
        while not self.stop_event.is_set():
            if max_iterations is not None and iteration >= max_iterations:
                break
            iteration += 1
            try:
                if self.cursor is None:
                    self.start()
                    continue
                self.run_once()
            except ProviderError as e:
                logger.warning(f"Provider error, backing off: {e}")
                self.feed.push(ReportFormatter.format_error(f"HyperSync connection issue, retrying... ({e})"))
                self.pacer.backoff()
            except Exception as e:
                logger.exception(f"Unexpected error in ingestion loop: {e}")
                self.feed.push(ReportFormatter.format_error(str(e)))
                self.pacer.backoff()
        logger.info("Ingestion loop stopped.")

    def run_once(self):
        """單一輪：查詢、處理、推進 cursor、休息。"""
        mode = self.mode_switch.current()
        query = build_query(self.cursor.from_block, SWAP_TOPIC0, self.config.pools)
        response = self.provider.get(query)

        if not response.has_data:
            self.feed.push(ReportFormatter.format_waiting())
            self.pacer.idle()
            return

        # 鏈頭與 cursor 各自前進，每一輪都要重新查
        height = self.provider.get_height()
        self.cursor.chain_height = height
        self.process_batch(response, mode)
        self._maybe_summary()

        if response.next_block is None:
            self.pacer.idle()
            return

        from_block = self.cursor.from_block
        next_block = response.next_block
        self.cursor.from_block = next_block
        self.stats.total_blocks += max(0, next_block - from_block)

        behind = max(0, height - next_block)
        swap_count = len(response.logs)
        if swap_count:
            self.feed.push(ReportFormatter.format_batch(from_block, next_block, swap_count, behind))
        elif next_block - from_block >= HEARTBEAT_BLOCKS or behind <= self.pacer.live_tolerance_blocks:
            self.feed.push(ReportFormatter.format_heartbeat(next_block, behind))

        if self.pacer.advance(next_block, height):
            self.feed.push(ReportFormatter.format_caught_up(height))

    # ---- batch processing ----

    def process_batch(self, response: QueryResponse, mode: TradingMode) -> List[Trade]:
        self.stats.batches += 1
        swaps = EventJoiner.join(response.logs, response.transactions, response.blocks)
        trades = []
        misses = 0
        for swap in swaps:
            result = self.classifier.classify(swap)
            if result is None:
                continue
            self.stats.total_swaps += 1
            if swap.transaction is None:
                misses += 1
            if isinstance(result, DecodeFailure):
                self.stats.decode_failures += 1
                continue

            trades.append(result)
            # chain 模式下開倉時間 = 訊號所在 block 的時間
            self.chain_time = max(self.chain_time, result.timestamp)
            self.last_prices[result.pool_address] = result.price
            self._handle_trade(result, mode)

        if misses:
            self.stats.join_misses += misses
            logger.debug(f"{misses} swap logs couldn't find matching transaction")

        for block in response.blocks:
            self.chain_time = max(self.chain_time, block.timestamp)
        self._check_expiry()
        return trades

    def _handle_trade(self, trade: Trade, mode: TradingMode):
        cfg = self.config
        decision = self.wallet_filter.evaluate(
            trade, mode, cfg.watch_set, cfg.min_trade_size,
            cfg.demo_show_threshold, cfg.demo_follow_threshold,
        )

        if decision.is_signal:
            self.stats.matched_swaps += 1
            for line in ReportFormatter.format_signal(trade, mode):
                self.feed.push(line)
            if self.engine.is_open:
                self.feed.push(ReportFormatter.format_skip_in_position(trade))
                return
            opened = self.engine.open(
                trade.side, trade.base_quantity, trade.quote_quantity, trade.price, self.now(),
                pool_address=trade.pool_address, tx_hash=trade.tx_hash, origin_address=trade.origin_address,
            )
            if opened is not None:
                self.feed.push(ReportFormatter.format_opened())
            return

        if not decision.is_visible:
            return
        if mode == TradingMode.SMART_WALLET and trade.origin_address in cfg.watch_set:
            self.feed.push(ReportFormatter.format_small_target(trade))
            return
        self.feed.push(ReportFormatter.format_background_swap(trade))
        if mode == TradingMode.DEMO and trade.side == Side.SELL and trade.base_quantity >= cfg.demo_follow_threshold:
            self.feed.push(ReportFormatter.format_skip_sell())

    def _check_expiry(self) -> Optional[ClosedTrade]:
        position = self.engine.position
        if position is None:
            return None
        price = self.last_prices.get(position.pool_address, position.entry_price)
        closed = self.engine.check_expiry(self.now(), self.config.hold_duration, price)
        if closed is not None:
            for line in ReportFormatter.format_close(closed):
                self.feed.push(line)
            if self.on_close:
                self.on_close(closed)
        return closed

    def _maybe_summary(self):
        current = self.clock()
        if current - self._last_summary < SUMMARY_INTERVAL_SECONDS:
            return
        self._last_summary = current
        self.feed.push(ReportFormatter.format_summary(
            self.stats.total_swaps, self.stats.matched_swaps, self.engine.is_open,
        ))
