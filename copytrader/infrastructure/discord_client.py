import threading
import requests
from typing import Optional
from copytrader.config.logging import logger
from copytrader.core.models import ClosedTrade


class DiscordNotifier:
    """
    平倉後把結果推到 Discord webhook。沒有設定 webhook 時直接略過。
    """

    def __init__(self, webhook_url: Optional[str], username: str = "Copy Trader Bot", max_retries: int = 2):
        self.webhook_url = webhook_url
        self.username = username
        self.max_retries = max_retries

    @staticmethod
    def format_closed_trade(trade: ClosedTrade) -> str:
        result = "WIN" if trade.realized_pnl_fraction >= 0 else "LOSS"
        sign = "+" if trade.realized_pnl_fraction >= 0 else ""
        return (
            f"**Trade #{trade.sequence_id} closed ({result})**\n"
            f"{trade.side.value} {trade.base_quantity:.4f} | "
            f"Entry ${trade.entry_price:.2f} → Exit ${trade.exit_price:.2f}\n"
            f"P&L: {sign}${trade.realized_pnl_quote:.2f} ({sign}{trade.realized_pnl_fraction * 100:.2f}%) | "
            f"Held {trade.duration_seconds}s"
        )

    def send_message(self, message: str) -> bool:
        if not self.webhook_url:
            return False

        payload = {"content": message, "username": self.username}
        for attempt in range(1, self.max_retries + 1):
            try:
                response = requests.post(self.webhook_url, json=payload, timeout=10)
                response.raise_for_status()
                return True
            except requests.exceptions.RequestException as e:
                logger.warning(f"Failed to send Discord message (Attempt {attempt}/{self.max_retries}): {e}")
        logger.error("All retry attempts failed for Discord webhook.")
        return False

    def notify_closed_trade(self, trade: ClosedTrade) -> bool:
        return self.send_message(self.format_closed_trade(trade))

    def notify_in_background(self, trade: ClosedTrade) -> threading.Thread:
        """交給 daemon thread 送出，webhook 重試不會卡住主迴圈。"""
        thread = threading.Thread(target=self.notify_closed_trade, args=(trade,), daemon=True)
        thread.start()
        return thread
