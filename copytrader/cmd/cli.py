import argparse
import sys
import threading
from copytrader.bot import build_bot, load_engine
from copytrader.config.logging import enable_file_logging, logger
from copytrader.config.settings import load_settings
from copytrader.core.exceptions import ConfigurationError
from copytrader.services.control import ControlSurface
from copytrader.services.report_formatter import ReportFormatter

HOTKEYS = "[HOTKEYS] d=toggle DEMO mode | s=account stats | p=position | q=quit"


def handle_command(command: str, control: ControlSurface, hold_duration: float) -> bool:
    """處理一行 console 指令；回傳 False 代表要結束。"""
    command = command.strip().lower()
    if command == "d":
        control.toggle_mode()
    elif command == "s":
        print(ReportFormatter.format_account(control.get_account_stats()))
    elif command == "p":
        print(control.describe_position(hold_duration))
    elif command == "q":
        control.request_shutdown()
        return False
    elif command:
        print(HOTKEYS)
    return True


def console_control(control: ControlSurface, hold_duration: float, stream=sys.stdin):
    """讀 stdin 的背景執行緒；只透過 ControlSurface 與主迴圈溝通。"""
    for line in stream:
        if not handle_command(line, control, hold_duration):
            break
        if control.shutdown_requested:
            break


def run_bot(demo: bool = None, dry_run: bool = False, interactive: bool = True) -> int:
    # 先驗證設定，缺 token 時不建立任何連線
    try:
        settings = load_settings()
    except ConfigurationError as e:
        logger.critical(f"Critical: Configuration could not be loaded. {e}")
        return 1

    if settings.LOG_FILE:
        enable_file_logging(settings.LOG_FILE)
    bot = build_bot(settings, demo=demo, dry_run=dry_run)
    if interactive:
        bot.control.feed.push(HOTKEYS)
        threading.Thread(
            target=console_control,
            args=(bot.control, settings.HOLD_DURATION_SECONDS),
            daemon=True,
        ).start()

    try:
        bot.loop.run()
    except KeyboardInterrupt:
        logger.info("Shutdown signal received.")
        bot.control.request_shutdown()
    finally:
        bot.client.close()
        print(ReportFormatter.format_account(bot.control.get_account_stats()))
    return 0


def show_stats() -> int:
    try:
        settings = load_settings()
    except ConfigurationError as e:
        logger.critical(f"Critical: Configuration could not be loaded. {e}")
        return 1

    engine = load_engine(settings, dry_run=True)
    print(ReportFormatter.format_account(engine.stats()))
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(description="Smart Wallet Copy Trading CLI")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Command: run (持續跑)
    run_parser = subparsers.add_parser("run", help="Follow swaps and paper-trade continuously")
    run_parser.add_argument("--demo", action="store_true", default=None, help="Start in DEMO mode (follow all BUYs)")
    run_parser.add_argument("--dry-run", action="store_true", help="Never write the account state file")
    run_parser.add_argument("--no-console", action="store_true", help="Disable stdin hotkeys")

    # Command: stats (只看帳戶)
    subparsers.add_parser("stats", help="Print the persisted account summary")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "run":
        sys.exit(run_bot(demo=args.demo, dry_run=args.dry_run, interactive=not args.no_console))

    elif args.command == "stats":
        sys.exit(show_stats())

if __name__ == "__main__":
    main()
