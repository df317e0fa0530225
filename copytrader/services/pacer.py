from enum import Enum
from typing import Callable

# 距離鏈頭多少個 block 以內視為已追上
LIVE_TOLERANCE_BLOCKS = 2
# 約一個 Ethereum block 的時間
LIVE_POLL_SECONDS = 12.0
REPLAY_POLL_SECONDS = 0.1
IDLE_SECONDS = 12.0
ERROR_BACKOFF_SECONDS = 10.0


class PaceState(str, Enum):
    REPLAY = "REPLAY"
    LIVE = "LIVE"


class Pacer:
    """
    兩種狀態的節奏控制：
    REPLAY: 還在追歷史區塊，短暫休息後立刻繼續；
    LIVE:   已追上鏈頭，等大約一個區塊時間再查。
    sleep 由外部注入，測試時不需要真的等待。
    """

    def __init__(
        self,
        sleep: Callable[[float], None],
        live_tolerance_blocks: int = LIVE_TOLERANCE_BLOCKS,
        live_poll_seconds: float = LIVE_POLL_SECONDS,
        replay_poll_seconds: float = REPLAY_POLL_SECONDS,
        idle_seconds: float = IDLE_SECONDS,
        error_backoff_seconds: float = ERROR_BACKOFF_SECONDS,
    ):
        self.sleep = sleep
        self.live_tolerance_blocks = live_tolerance_blocks
        self.live_poll_seconds = live_poll_seconds
        self.replay_poll_seconds = replay_poll_seconds
        self.idle_seconds = idle_seconds
        self.error_backoff_seconds = error_backoff_seconds
        self.state = PaceState.REPLAY

    def classify(self, next_block: int, chain_height: int) -> PaceState:
        if next_block >= chain_height - self.live_tolerance_blocks:
            return PaceState.LIVE
        return PaceState.REPLAY

    def advance(self, next_block: int, chain_height: int) -> bool:
        """更新狀態並休息；回傳 True 代表這次是剛從 REPLAY 進入 LIVE。"""
        previous = self.state
        self.state = self.classify(next_block, chain_height)
        self.sleep(self.live_poll_seconds if self.state == PaceState.LIVE else self.replay_poll_seconds)
        return previous == PaceState.REPLAY and self.state == PaceState.LIVE

    def idle(self):
        self.sleep(self.idle_seconds)

    def backoff(self):
        self.sleep(self.error_backoff_seconds)
