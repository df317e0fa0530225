import logging
import sys
from logging.handlers import RotatingFileHandler

# 嘗試 import settings，如果失敗（例如環境變數沒設），則使用預設值
try:
    from copytrader.config.settings import settings
    LOG_LEVEL = settings.LOG_LEVEL.upper() if settings else "INFO"
except Exception:
    LOG_LEVEL = "INFO"

FORMATTER = logging.Formatter(
    '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)


def setup_logging(name: str = "copytrader") -> logging.Logger:
    """
    統一的日誌配置。
    import 時只掛 Console (Stdout)；檔案紀錄由 enable_file_logging 在 run 時才打開。
    """
    logger = logging.getLogger(name)

    # 防止重複添加 Handler
    if logger.handlers:
        return logger

    level = getattr(logging, LOG_LEVEL, logging.INFO)
    logger.setLevel(level)

    # Console Handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(FORMATTER)
    logger.addHandler(console_handler)

    return logger


def enable_file_logging(log_file: str, name: str = "copytrader") -> RotatingFileHandler:
    """加上診斷用的 RotatingFileHandler (5MB per file, 2 backups)，重複呼叫回傳同一個。"""
    logger = logging.getLogger(name)
    for handler in logger.handlers:
        if isinstance(handler, RotatingFileHandler):
            return handler

    file_handler = RotatingFileHandler(log_file, maxBytes=1024*1024*5, backupCount=2)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(FORMATTER)
    logger.addHandler(file_handler)
    # 檔案要收 DEBUG，console 由 handler 自己的 level 過濾
    logger.setLevel(logging.DEBUG)
    return file_handler


# 預設 Logger
logger = setup_logging()
