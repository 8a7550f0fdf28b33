"""
淨值歷史引擎錯誤類別

內部元件一律原樣往上拋，只有 API 層負責轉成對外的錯誤碼。
"""

from datetime import date


class HistoryError(Exception):
    """淨值歷史引擎錯誤基底類別"""
    retryable: bool = False


class InvalidRequest(HistoryError):
    """期間與日期範圍組合不合法"""
    pass


class MissingExchangeRate(HistoryError):
    """找不到可用匯率（直接、反向、日後近似皆無）"""

    def __init__(self, from_currency: str, to_currency: str, on: date):
        self.from_currency = from_currency
        self.to_currency = to_currency
        self.on = on
        super().__init__(
            f"找不到 {from_currency}/{to_currency} 於 {on.isoformat()} 可用的匯率"
        )


class UpstreamUnavailable(HistoryError):
    """帳戶、餘額或匯率資料來源無法連線，呼叫端可退避重試"""
    retryable = True


class HistoryTimeout(HistoryError):
    """計算超過時限，已取消進行中的查詢"""
    retryable = True
