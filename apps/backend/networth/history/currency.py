"""
幣別工具

僅在輸出時依幣別的最小單位四捨五入，累加過程不做任何捨入。
"""

import re
from decimal import Decimal, ROUND_HALF_UP

# 無輔幣單位的幣別
ZERO_DECIMAL_CURRENCIES = frozenset({
    "BIF", "CLP", "DJF", "GNF", "ISK", "JPY", "KMF", "KRW",
    "PYG", "RWF", "UGX", "VND", "VUV", "XAF", "XOF", "XPF",
})

# 輔幣單位為千分之一的幣別
THREE_DECIMAL_CURRENCIES = frozenset({
    "BHD", "IQD", "JOD", "KWD", "LYD", "OMR", "TND",
})

_CODE_RE = re.compile(r"^[A-Z]{3}$")


def normalize_code(code: str) -> str | None:
    """轉為大寫 ISO 4217 代碼，格式不符時回傳 None"""
    code = code.strip().upper()
    return code if _CODE_RE.match(code) else None


def minor_units(currency: str) -> int:
    """幣別的小數位數"""
    currency = currency.upper()
    if currency in ZERO_DECIMAL_CURRENCIES:
        return 0
    if currency in THREE_DECIMAL_CURRENCIES:
        return 3
    return 2


def quantize_amount(amount: Decimal, currency: str) -> Decimal:
    """依幣別最小單位四捨五入"""
    exponent = Decimal(1).scaleb(-minor_units(currency))
    return amount.quantize(exponent, rounding=ROUND_HALF_UP)
