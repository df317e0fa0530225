import io
from logging.handlers import RotatingFileHandler
import threading
from decimal import Decimal
import pytest
from copytrader.bot import build_bot, pool_configs_from_settings, strategy_from_settings
from copytrader.cmd.cli import HOTKEYS, console_control, handle_command, main, run_bot
from copytrader.config.logging import enable_file_logging, logger
from copytrader.config.settings import load_settings
from copytrader.core.exceptions import ConfigurationError
from copytrader.core.models import Account, PoolConfig, TradingMode
from copytrader.infrastructure.discord_client import DiscordNotifier
from copytrader.services.control import ControlSurface, FeedBuffer, ModeSwitch
from copytrader.services.position_engine import PositionEngine


def _control():
    engine = PositionEngine(Account.fresh(Decimal("10000")))
    return ControlSurface(engine, ModeSwitch(), FeedBuffer(echo=False), threading.Event())


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    # 不讀到開發機上的 .env 或環境變數
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("HYPERSYNC_BEARER", raising=False)
    return tmp_path


def test_settings_defaults(clean_env):
    settings = load_settings(HYPERSYNC_BEARER=" token ")
    assert settings.HYPERSYNC_BEARER == "token"
    assert settings.HOLD_DURATION_SECONDS == 120
    assert settings.CLOCK_SOURCE == "monotonic"


def test_settings_lowercase_addresses(clean_env):
    settings = load_settings(
        HYPERSYNC_BEARER="token",
        POOLS=["0xABC"],
        SMART_WALLETS=["0xDEF"],
        POOL_DECIMALS={"0xABC": {"base": 18, "quote": 6}},
    )
    assert settings.POOLS == ["0xabc"]
    assert settings.SMART_WALLETS == ["0xdef"]
    assert pool_configs_from_settings(settings) == {"0xabc": PoolConfig(18, 6)}


@pytest.mark.parametrize("overrides", [
    {},
    {"HYPERSYNC_BEARER": "   "},
    {"HYPERSYNC_BEARER": "token", "POOL_DECIMALS": {"0xabc": {"base": 18}}},
    {"HYPERSYNC_BEARER": "token", "CLOCK_SOURCE": "wall"},
])
def test_invalid_settings_raise(clean_env, overrides):
    with pytest.raises(ConfigurationError):
        load_settings(**overrides)


def test_settings_read_from_env(clean_env, monkeypatch):
    monkeypatch.setenv("HYPERSYNC_BEARER", "from-env")
    monkeypatch.setenv("MIN_TRADE_SIZE", "0.25")
    settings = load_settings()
    assert settings.HYPERSYNC_BEARER == "from-env"
    assert strategy_from_settings(settings).min_trade_size == Decimal("0.25")


def test_run_bot_without_token_exits_early(clean_env):
    assert run_bot(interactive=False) == 1
    assert not (clean_env / "account_state.json").exists()


def test_main_stats_without_token(clean_env):
    with pytest.raises(SystemExit) as exc:
        main(["stats"])
    assert exc.value.code == 1


def test_build_bot_wiring(clean_env):
    settings = load_settings(HYPERSYNC_BEARER="token", ACCOUNT_STATE_FILE=str(clean_env / "state.json"))
    bot = build_bot(settings, demo=True, dry_run=True)
    try:
        assert bot.control.mode_switch.current() == TradingMode.DEMO
        assert bot.loop.engine.store is None
        assert bot.loop.config.watch_set == frozenset(settings.SMART_WALLETS)
        assert bot.control.engine is bot.loop.engine
        # 平倉通知走背景 thread
        assert bot.loop.on_close.__func__ is DiscordNotifier.notify_in_background
    finally:
        bot.client.close()


def test_handle_command(capsys):
    control = _control()
    assert handle_command("d\n", control, 120)
    assert control.mode_switch.current() == TradingMode.DEMO

    assert handle_command("s", control, 120)
    assert "Balance: $10000.00" in capsys.readouterr().out

    assert handle_command("p", control, 120)
    assert "--- No active position ---" in capsys.readouterr().out

    assert handle_command("?", control, 120)
    assert HOTKEYS in capsys.readouterr().out

    assert not handle_command("Q", control, 120)
    assert control.shutdown_requested


def test_console_control_stops_at_quit():
    control = _control()
    console_control(control, 120, stream=io.StringIO("q\nd\n"))
    assert control.shutdown_requested
    assert control.mode_switch.current() == TradingMode.SMART_WALLET


def test_import_does_not_open_log_file():
    assert not any(isinstance(h, RotatingFileHandler) for h in logger.handlers)


def test_enable_file_logging_writes_to_given_path(tmp_path):
    log_path = tmp_path / "copytrader.log"
    level = logger.level
    handler = enable_file_logging(str(log_path))
    try:
        assert enable_file_logging(str(tmp_path / "other.log")) is handler
        logger.debug("diagnostic line")
        handler.flush()
        assert "diagnostic line" in log_path.read_text(encoding="utf-8")
        assert not (tmp_path / "other.log").exists()
    finally:
        logger.removeHandler(handler)
        handler.close()
        logger.setLevel(level)
    assert logger.level == level
