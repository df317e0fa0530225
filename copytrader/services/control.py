import threading
import time
from collections import deque
from decimal import Decimal
from typing import Callable, Dict, List, Optional
from copytrader.config.logging import logger
from copytrader.core.models import Position, TradingMode, UnrealizedPnl
from copytrader.services.report_formatter import ReportFormatter

MAX_FEED_LINES = 100

feed_logger = logger.getChild("feed")


class ModeSwitch:
    """
    TradingMode 的單一槽位。UI / 按鍵執行緒只呼叫 toggle()，
    ingestion loop 每一輪開頭讀一次 current()。
    """

    def __init__(self, mode: TradingMode = TradingMode.SMART_WALLET):
        self._mode = mode
        self._lock = threading.Lock()

    def current(self) -> TradingMode:
        with self._lock:
            return self._mode

    def toggle(self) -> TradingMode:
        with self._lock:
            self._mode = TradingMode.DEMO if self._mode == TradingMode.SMART_WALLET else TradingMode.SMART_WALLET
            return self._mode


class FeedBuffer:
    """
    給顯示端的事件字串 feed。保留最近 100 行，並推送給訂閱者。
    """

    def __init__(self, max_lines: int = MAX_FEED_LINES, echo: bool = True):
        self._lines = deque(maxlen=max_lines)
        self._subscribers: List[Callable[[str], None]] = []
        self._lock = threading.Lock()
        self.echo = echo

    def subscribe(self, callback: Callable[[str], None]):
        with self._lock:
            self._subscribers.append(callback)

    def push(self, message: str):
        with self._lock:
            self._lines.append(message)
            subscribers = list(self._subscribers)
        if self.echo and message:
            feed_logger.info(message)
        for callback in subscribers:
            callback(message)

    def lines(self) -> List[str]:
        with self._lock:
            return list(self._lines)


class ControlSurface:
    """
    對外 (UI / CLI) 的控制介面：切換模式、查詢帳戶、讀 feed、要求關閉。
    只讀取 engine 的狀態，所有修改仍然只發生在 ingestion loop 的執行緒。
    """

    def __init__(self, engine, mode_switch: ModeSwitch, feed: FeedBuffer, stop_event: threading.Event,
                 last_price: Optional[Callable[[str], Optional[Decimal]]] = None,
                 now: Callable[[], float] = time.monotonic):
        self.engine = engine
        self.mode_switch = mode_switch
        self.feed = feed
        self.stop_event = stop_event
        self._last_price = last_price
        self._now = now

    def toggle_mode(self) -> TradingMode:
        mode = self.mode_switch.toggle()
        for line in ReportFormatter.format_mode_switch(mode):
            self.feed.push(line)
        return mode

    def get_account_stats(self) -> Dict:
        return self.engine.stats()

    def get_open_position(self) -> Optional[Position]:
        return self.engine.position

    def current_price(self) -> Optional[Decimal]:
        position = self.engine.position
        if position is None:
            return None
        price = self._last_price(position.pool_address) if self._last_price else None
        return price if price is not None else position.entry_price

    def mark_open_position(self) -> Optional[UnrealizedPnl]:
        price = self.current_price()
        if price is None:
            return None
        return self.engine.mark_to_market(price)

    def describe_position(self, hold_duration: float) -> str:
        position = self.engine.position
        elapsed = self._now() - position.opened_at if position else 0
        return ReportFormatter.format_position(
            position, self.current_price(), self.mark_open_position(), elapsed, hold_duration,
        )

    def request_shutdown(self):
        self.stop_event.set()

    @property
    def shutdown_requested(self) -> bool:
        return self.stop_event.is_set()
