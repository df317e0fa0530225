import sys
from typing import Dict, List, Literal, Optional
from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings

from copytrader.core.exceptions import ConfigurationError


class Settings(BaseSettings):
    """
    應用程式全域設定。
    自動從環境變數 (.env) 讀取並驗證型別。
    List / Dict 欄位以 JSON 字串提供，例如 POOLS='["0x8ad5..."]'。
    """
    # HyperSync 設定
    HYPERSYNC_URL: str = "https://eth.hypersync.xyz"
    HYPERSYNC_BEARER: str  # 必填，缺少時啟動即失敗
    REQUEST_TIMEOUT_SECONDS: float = 30.0

    # 監控目標 (空的 POOLS = 不限制池子，等同 diagnostic mode)
    POOLS: List[str] = [
        "0x8ad599c3a0ff1de082011efddc58f1908eb6e6d8",  # Uniswap V3 USDC/WETH 0.3%
    ]
    # 每個池子的 base / quote 精度，未列出的池子使用 DEFAULT_POOL 設定
    POOL_DECIMALS: Dict[str, Dict[str, int]] = {
        "0x8ad599c3a0ff1de082011efddc58f1908eb6e6d8": {"base": 18, "quote": 6},
    }
    SMART_WALLETS: List[str] = [
        "0x56fc0708725a65ebb633efdaec931c0600a9face",
    ]

    # 交易策略
    MIN_TRADE_SIZE: float = 0.1
    HOLD_DURATION_SECONDS: float = 120
    START_BLOCKS_BACK: int = 5000
    INITIAL_BALANCE: float = 10000
    BACKGROUND_SHOW_THRESHOLD: float = 0.5
    DEMO_SHOW_THRESHOLD: float = 0.005
    DEMO_FOLLOW_THRESHOLD: float = 0.005
    START_IN_DEMO_MODE: bool = False
    CLOCK_SOURCE: Literal["monotonic", "chain"] = "monotonic"

    # 節奏控制 (秒)
    LIVE_POLL_SECONDS: float = 12.0
    REPLAY_POLL_SECONDS: float = 0.1
    ERROR_BACKOFF_SECONDS: float = 10.0

    # 帳戶狀態
    ACCOUNT_STATE_FILE: str = "account_state.json"
    DRY_RUN: bool = False

    # 通知 (Optional)
    DISCORD_WEBHOOK_URL: Optional[str] = None

    # 應用程式行為
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "copytrader.log"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

    @field_validator("HYPERSYNC_BEARER")
    @classmethod
    def _bearer_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("HYPERSYNC_BEARER must not be empty")
        return value.strip()

    @field_validator("POOLS", "SMART_WALLETS")
    @classmethod
    def _lower_addresses(cls, value: List[str]) -> List[str]:
        return [addr.strip().lower() for addr in value]

    @field_validator("POOL_DECIMALS")
    @classmethod
    def _lower_pool_keys(cls, value: Dict[str, Dict[str, int]]) -> Dict[str, Dict[str, int]]:
        for pool, cfg in value.items():
            if "base" not in cfg or "quote" not in cfg:
                raise ValueError(f"POOL_DECIMALS[{pool}] needs 'base' and 'quote'")
        return {pool.strip().lower(): cfg for pool, cfg in value.items()}


def load_settings(**overrides) -> Settings:
    """讀取設定，驗證失敗時統一轉成 ConfigurationError。"""
    try:
        return Settings(**overrides)
    except ValidationError as e:
        missing = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        raise ConfigurationError(f"Invalid configuration ({', '.join(missing)}): {e}") from e


# Singleton Instance
try:
    settings = load_settings()
except ConfigurationError as e:
    # logging 依賴 settings，這裡只能直接印到 stderr
    print(f"CRITICAL: Failed to load configuration. Missing env vars? {e}", file=sys.stderr)
    settings = None
