class AppError(Exception):
    """所有應用程式自定義錯誤的基類"""
    pass

class ConfigurationError(AppError):
    """設定錯誤 (如缺少 HYPERSYNC_BEARER)"""
    pass

class ProviderError(AppError):
    """資料來源錯誤 (如 HyperSync 連線失敗、回應格式不符)"""
    pass

class DecodeError(AppError):
    """Swap log 解碼失敗 (payload 長度或數值範圍不合法)"""
    pass

class PersistenceError(AppError):
    """帳戶狀態寫入失敗"""
    pass
