from decimal import Decimal
from typing import Dict, List, Optional
from copytrader.core.models import ClosedTrade, Position, Trade, TradingMode, UnrealizedPnl


def _short(value: Optional[str], length: int = 10) -> str:
    return f"{value[:length]}..." if value else "unknown"


def _signed(value) -> str:
    return "+" if value >= 0 else ""


def sync_status(behind_tip: int) -> str:
    if behind_tip <= 0:
        return "LIVE"
    if behind_tip < 10:
        return "NEAR-LIVE"
    return "SYNCING"


class ReportFormatter:
    """
    Feed 上所有給人看的字串都在這裡組出來，ingestion / control 只負責推送。
    """

    @staticmethod
    def format_startup(from_block: int, chain_height: int, wallet_count: int,
                       min_size: Decimal, hold_duration: float, mode: TradingMode) -> List[str]:
        return [
            "[HYPERSYNC] Connected to HyperSync",
            f"[CONFIG] Scanning from block {from_block} (chain tip: {chain_height})",
            f"[CONFIG] Tracking {wallet_count} target wallet(s) | Mode: {mode.value}",
            f"[CONFIG] Min trade size: {min_size} | Hold time: {hold_duration:g}s",
            "",
        ]

    @staticmethod
    def format_batch(from_block: int, to_block: int, swap_count: int, behind_tip: int) -> str:
        return (
            f"[HYPERSYNC] Processed blocks {from_block}-{to_block} | Found {swap_count} swaps | "
            f"Status: {sync_status(behind_tip)} (-{behind_tip})"
        )

    @staticmethod
    def format_heartbeat(block: int, behind_tip: int) -> str:
        return f"[HYPERSYNC] Block {block} synced | Status: {sync_status(behind_tip)} (-{behind_tip})"

    @staticmethod
    def format_waiting() -> str:
        return "Waiting for data..."

    @staticmethod
    def format_caught_up(chain_height: int) -> str:
        return f"[LIVE] Caught up to chain head (block {chain_height}), waiting for new blocks..."

    @staticmethod
    def format_background_swap(trade: Trade) -> str:
        return (
            f"  [SWAP] {trade.side.value} {trade.base_quantity:.4f} @ ${trade.price:.2f} | "
            f"{_short(trade.origin_address)}"
        )

    @staticmethod
    def format_small_target(trade: Trade) -> str:
        return f"[TARGET] Wallet detected but size too small ({trade.base_quantity:.4f})"

    @staticmethod
    def format_signal(trade: Trade, mode: TradingMode) -> List[str]:
        title = (">>> DEMO MODE: Following this trade <<<" if mode == TradingMode.DEMO
                 else ">>> TARGET WALLET DETECTED <<<")
        return [
            "",
            title,
            f"  Wallet: {_short(trade.origin_address, 12)} | Tx: {_short(trade.tx_hash)}",
            f"  Action: {trade.side.value} {trade.base_quantity:.4f} @ ${trade.price:.2f}",
            f"  Value:  ${trade.base_quantity * trade.price:.2f}",
        ]

    @staticmethod
    def format_opened() -> str:
        return "  [AUTO-FOLLOW] Position opened"

    @staticmethod
    def format_skip_in_position(trade: Trade) -> str:
        return f"  [SKIP] {trade.side.value} {trade.base_quantity:.4f} - already in position"

    @staticmethod
    def format_skip_sell() -> str:
        return "  [SKIP] SELL - demo mode only follows BUY trades"

    @staticmethod
    def format_close(trade: ClosedTrade) -> List[str]:
        result = "[WIN]" if trade.realized_pnl_fraction >= 0 else "[LOSS]"
        sign = _signed(trade.realized_pnl_fraction)
        return [
            "",
            f">>> POSITION CLOSED {result} <<<",
            f"  Entry:  ${trade.entry_price:.2f} | Exit: ${trade.exit_price:.2f}",
            f"  P&L:    {sign}${trade.realized_pnl_quote:.2f} ({sign}{trade.realized_pnl_fraction * 100:.2f}%)",
            f"  Held:   {trade.duration_seconds}s",
        ]

    @staticmethod
    def format_mode_switch(mode: TradingMode) -> List[str]:
        desc = "Following ALL buy trades" if mode == TradingMode.DEMO else "Following smart wallets only"
        return ["", f"[MODE SWITCH] Switched to {mode.value} mode", f"  {desc}", ""]

    @staticmethod
    def format_position(position: Optional[Position], current_price: Optional[Decimal],
                        unrealized: Optional[UnrealizedPnl], elapsed: float, hold_duration: float) -> str:
        if position is None:
            return "--- No active position ---"
        remaining = max(0, hold_duration - elapsed)
        progress = min(100, elapsed / hold_duration * 100) if hold_duration else 100
        lines = [
            f"Action:    {position.side.value} {position.base_quantity:.4f}",
            f"Entry:     ${position.entry_price:.2f}",
            f"Current:   ${(current_price or position.entry_price):.2f}",
            f"Value:     ${position.quote_value:.2f}",
            f"Time:      {int(elapsed)}s / {hold_duration:g}s ({progress:.0f}%)",
            f"Closes in: {int(remaining)}s",
        ]
        if unrealized is not None:
            sign = _signed(unrealized.fraction)
            lines.append(f"Unrealized P&L: {sign}${unrealized.quote:.2f} ({sign}{unrealized.fraction * 100:.2f}%)")
        return "\n".join(lines)

    @staticmethod
    def format_account(stats: Dict) -> str:
        """Formats the account summary shown by the `stats` command and the `s` hotkey."""
        lines = [
            f"Balance: ${stats['balance']:.2f}",
            f"Total Trades: {stats['total_trades']}",
            f"Win Rate: {stats['win_rate']:.1f}%",
            f"Total PnL: ${stats['total_pnl_quote']:.2f} "
            f"({_signed(stats['total_pnl_percent'])}{stats['total_pnl_percent']:.2f}%)",
            f"Max Consecutive Loss: {stats['max_consecutive_loss']}",
            f"Max Drawdown: ${stats['max_drawdown_quote']:.2f}",
            "",
            "=== Recent Trades ===",
        ]
        recent = stats["recent_closed_trades"]
        if not recent:
            lines.append("No trades yet")
        for t in recent:
            icon = "[WIN]" if t.realized_pnl_fraction >= 0 else "[LOSS]"
            sign = _signed(t.realized_pnl_fraction)
            lines.append(f"Trade #{t.sequence_id} {icon}")
            lines.append(f"  Action: {t.side.value} {t.base_quantity:.4f}")
            lines.append(f"  Entry:  ${t.entry_price:.2f} | Exit: ${t.exit_price:.2f}")
            lines.append(f"  P&L:    {sign}${t.realized_pnl_quote:.2f} ({sign}{t.realized_pnl_fraction * 100:.2f}%)")
            lines.append(f"  Duration: {t.duration_seconds}s")
        return "\n".join(lines)

    @staticmethod
    def format_summary(total_swaps: int, matched_swaps: int, is_open: bool) -> str:
        status = "TRACKING" if is_open else "IDLE"
        return f"[SUMMARY] {total_swaps} total swaps scanned | {matched_swaps} signals | Status: {status}"

    @staticmethod
    def format_error(message: str) -> str:
        return f"[ERROR] {message[:100]}"
