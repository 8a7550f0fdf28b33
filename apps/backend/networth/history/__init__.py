"""淨值歷史引擎：餘額時間軸、匯率解析、取樣排程、聚合與服務邊界"""

from networth.history.aggregator import (
    AccountContribution, AggregationResult, NetWorthAggregator, NetWorthDataPoint,
)
from networth.history.errors import (
    HistoryError, HistoryTimeout, InvalidRequest, MissingExchangeRate, UpstreamUnavailable,
)
from networth.history.rates import ExchangeRateResolver, RateQuote
from networth.history.scheduler import (
    HistoryPeriod, SampleScheduler, SamplingSpec, SamplingStrategy,
)
from networth.history.service import HistoryService
from networth.history.timeline import BalanceTimeline

__all__ = [
    "AccountContribution",
    "AggregationResult",
    "NetWorthAggregator",
    "NetWorthDataPoint",
    "HistoryError",
    "HistoryTimeout",
    "InvalidRequest",
    "MissingExchangeRate",
    "UpstreamUnavailable",
    "ExchangeRateResolver",
    "RateQuote",
    "HistoryPeriod",
    "SampleScheduler",
    "SamplingSpec",
    "SamplingStrategy",
    "HistoryService",
    "BalanceTimeline",
]
