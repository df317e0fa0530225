import threading
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
from copytrader.config.logging import logger
from copytrader.config.settings import Settings
from copytrader.core.models import PoolConfig, TradingMode
from copytrader.infrastructure.account_store import AccountStore
from copytrader.infrastructure.discord_client import DiscordNotifier
from copytrader.infrastructure.hypersync.client import HypersyncClient
from copytrader.services.classifier import SwapClassifier
from copytrader.services.control import ControlSurface, FeedBuffer, ModeSwitch
from copytrader.services.ingestion import IngestionLoop, StrategyConfig
from copytrader.services.pacer import Pacer
from copytrader.services.position_engine import PositionEngine
from copytrader.services.wallet_filter import WalletFilter


@dataclass
class Bot:
    loop: IngestionLoop
    control: ControlSurface
    client: HypersyncClient


def _dec(value) -> Decimal:
    return Decimal(str(value))


def strategy_from_settings(settings: Settings) -> StrategyConfig:
    return StrategyConfig(
        watch_set=frozenset(settings.SMART_WALLETS),
        min_trade_size=_dec(settings.MIN_TRADE_SIZE),
        hold_duration=settings.HOLD_DURATION_SECONDS,
        demo_show_threshold=_dec(settings.DEMO_SHOW_THRESHOLD),
        demo_follow_threshold=_dec(settings.DEMO_FOLLOW_THRESHOLD),
        start_blocks_back=settings.START_BLOCKS_BACK,
        pools=list(settings.POOLS),
        clock_source=settings.CLOCK_SOURCE,
    )


def pool_configs_from_settings(settings: Settings) -> dict:
    return {
        pool: PoolConfig(
            base_decimals=int(cfg["base"]),
            quote_decimals=int(cfg["quote"]),
            base_is_token0=bool(cfg.get("base_is_token0", False)),
        )
        for pool, cfg in settings.POOL_DECIMALS.items()
    }


def load_engine(settings: Settings, dry_run: bool = False) -> PositionEngine:
    # DRY_RUN 時只讀不寫
    store = AccountStore(settings.ACCOUNT_STATE_FILE)
    engine = PositionEngine.load(store, settings.INITIAL_BALANCE)
    if dry_run or settings.DRY_RUN:
        engine.store = None
    return engine


def build_bot(settings: Settings, demo: Optional[bool] = None, dry_run: bool = False,
              stop_event: Optional[threading.Event] = None) -> Bot:
    """組裝所有元件。設定必須已驗證完成 (HYPERSYNC_BEARER 存在)。"""
    stop_event = stop_event or threading.Event()
    start_demo = settings.START_IN_DEMO_MODE if demo is None else demo
    mode_switch = ModeSwitch(TradingMode.DEMO if start_demo else TradingMode.SMART_WALLET)
    feed = FeedBuffer()
    engine = load_engine(settings, dry_run=dry_run)
    notifier = DiscordNotifier(settings.DISCORD_WEBHOOK_URL)

    client = HypersyncClient(
        url=settings.HYPERSYNC_URL,
        bearer_token=settings.HYPERSYNC_BEARER,
        timeout=settings.REQUEST_TIMEOUT_SECONDS,
    )
    pacer = Pacer(
        sleep=stop_event.wait,
        live_poll_seconds=settings.LIVE_POLL_SECONDS,
        replay_poll_seconds=settings.REPLAY_POLL_SECONDS,
        idle_seconds=settings.LIVE_POLL_SECONDS,
        error_backoff_seconds=settings.ERROR_BACKOFF_SECONDS,
    )
    loop = IngestionLoop(
        provider=client,
        engine=engine,
        config=strategy_from_settings(settings),
        classifier=SwapClassifier(pool_configs_from_settings(settings)),
        wallet_filter=WalletFilter(_dec(settings.BACKGROUND_SHOW_THRESHOLD)),
        mode_switch=mode_switch,
        feed=feed,
        stop_event=stop_event,
        pacer=pacer,
        on_close=notifier.notify_in_background,
    )
    control = ControlSurface(engine, mode_switch, feed, stop_event, last_price=loop.last_price, now=loop.now)

    logger.info(f"Tracking {len(settings.SMART_WALLETS)} wallet(s) across "
                f"{len(settings.POOLS) or 'ALL'} pool(s), mode {mode_switch.current().value}")
    if not settings.POOLS:
        logger.warning("No pools configured: searching ALL Uniswap V3 pools.")
    return Bot(loop=loop, control=control, client=client)
