from decimal import Decimal
from typing import Dict, List
from copytrader.core.models import Account, ClosedTrade

RECENT_TRADES = 10


class AnalyticsService:
    @staticmethod
    def calculate_stats(account: Account) -> Dict:
        """
        Calculate account performance statistics from closed trades.
        A trade with realized_pnl_fraction > 0 counts as a win.
        """
        trades: List[ClosedTrade] = account.closed_trades
        initial = account.initial_balance
        total_pnl_percent = (
            (account.balance - initial) / initial * 100 if initial else Decimal(0)
        )

        if not trades:
            return {
                "balance": account.balance,
                "total_trades": 0,
                "win_rate": 0.0,
                "total_pnl_quote": Decimal(0),
                "total_pnl_percent": total_pnl_percent,
                "max_consecutive_loss": 0,
                "max_drawdown_quote": Decimal(0),
                "recent_closed_trades": [],
            }

        count = len(trades)
        wins = sum(1 for t in trades if t.is_profit())
        total_pnl = sum((t.realized_pnl_quote for t in trades), Decimal(0))

        # Max Consecutive Loss
        max_loss_streak = 0
        current_loss_streak = 0
        for t in trades:
            if t.realized_pnl_quote < 0:
                current_loss_streak += 1
            else:
                max_loss_streak = max(max_loss_streak, current_loss_streak)
                current_loss_streak = 0
        max_loss_streak = max(max_loss_streak, current_loss_streak)

        # Max Drawdown: decline from the highest balance reached, trades in close order
        equity = initial
        peak = initial
        max_dd = Decimal(0)
        for t in trades:
            equity += t.realized_pnl_quote
            peak = max(peak, equity)
            max_dd = max(max_dd, peak - equity)

        return {
            "balance": account.balance,
            "total_trades": count,
            "win_rate": round(wins / count * 100, 1),
            "total_pnl_quote": total_pnl,
            "total_pnl_percent": total_pnl_percent,
            "max_consecutive_loss": max_loss_streak,
            "max_drawdown_quote": -max_dd,  # Return as negative value for display
            "recent_closed_trades": list(reversed(trades[-RECENT_TRADES:])),
        }
