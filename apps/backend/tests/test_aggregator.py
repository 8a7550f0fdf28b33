"""Tests for NetWorthAggregator."""

from datetime import date
from decimal import Decimal

import pytest

from networth.history.aggregator import NetWorthAggregator
from networth.history.errors import MissingExchangeRate
from networth.history.rates import ExchangeRateResolver
from networth.history.scheduler import SamplingSpec, SamplingStrategy
from networth.history.timeline import BalanceTimeline
from networth.models.account import AccountType


def _sampling(*dates: date) -> SamplingSpec:
    return SamplingSpec(
        strategy=SamplingStrategy.MONTHLY,
        requested_strategy=SamplingStrategy.MONTHLY,
        start_date=dates[0],
        end_date=dates[-1],
        dates=tuple(dates),
        candidate_count=len(dates),
    )


EXAMPLE_DATES = _sampling(date(2024, 1, 15), date(2024, 2, 15), date(2024, 3, 15))


async def _aggregate(store, sampling=EXAMPLE_DATES, target="EUR", **kwargs):
    timeline = BalanceTimeline.from_entries(store.balances)
    aggregator = NetWorthAggregator(ExchangeRateResolver(store))
    return await aggregator.aggregate(store.accounts, timeline, sampling, target, **kwargs)


@pytest.mark.asyncio
async def test_example_scenario(example_store):
    result = await _aggregate(example_store)

    totals = [(p.total_assets, p.total_liabilities, p.net_worth) for p in result.points]
    assert totals == [
        (Decimal("1000"), Decimal("0"), Decimal("1000")),
        (Decimal("1000"), Decimal("270"), Decimal("730")),
        (Decimal("1200"), Decimal("270"), Decimal("930")),
    ]
    assert [p.accounts_counted for p in result.points] == [1, 2, 2]
    assert not result.rate_approximated
    assert result.rate_lookups == 2


@pytest.mark.asyncio
async def test_absent_balance_never_looks_up_rate(store):
    store.add_account("eur", currency="EUR")
    store.add_account("usd", currency="USD")
    store.add_balance("eur", "2024-01-01", "100")
    store.add_balance("usd", "2024-05-01", "50")

    result = await _aggregate(store)

    assert [p.net_worth for p in result.points] == [Decimal("100")] * 3
    assert store.rate_calls == []


@pytest.mark.asyncio
async def test_missing_rate_fails_whole_aggregation(store):
    store.add_account("eur", currency="EUR")
    store.add_account("gbp", currency="GBP")
    store.add_balance("eur", "2024-01-01", "100")
    store.add_balance("gbp", "2024-02-01", "10")

    with pytest.raises(MissingExchangeRate) as exc_info:
        await _aggregate(store)
    assert exc_info.value.from_currency == "GBP"


@pytest.mark.asyncio
async def test_excluded_account_only_in_breakdown(example_store):
    example_store.add_account("C", AccountType.ASSET, "EUR", include=False, name="Car")
    example_store.add_balance("C", "2024-01-01", "5000")

    plain = await _aggregate(example_store)
    assert [p.net_worth for p in plain.points] == [Decimal("1000"), Decimal("730"), Decimal("930")]
    assert all(p.breakdown is None for p in plain.points)

    detailed = await _aggregate(example_store, include_breakdown=True)
    assert [p.net_worth for p in detailed.points] == [Decimal("1000"), Decimal("730"), Decimal("930")]

    last = detailed.points[-1].breakdown
    by_id = {item.account_id: item for item in last}
    assert set(by_id) == {"A", "B", "C"}
    assert by_id["C"].included is False
    assert by_id["C"].converted == Decimal("5000")
    assert by_id["B"].balance == Decimal("300")
    assert by_id["B"].converted == Decimal("270")


@pytest.mark.asyncio
async def test_excluded_account_without_breakdown_needs_no_rate(example_store):
    example_store.add_account("gbp", currency="GBP", include=False)
    example_store.add_balance("gbp", "2024-01-01", "10")

    result = await _aggregate(example_store)
    assert result.points[-1].net_worth == Decimal("930")
    assert all(pair[0] != "GBP" for pair in example_store.rate_calls)


@pytest.mark.asyncio
async def test_approximated_rate_flags_point(store):
    store.add_account("usd", currency="USD")
    store.add_balance("usd", "2024-01-01", "100")
    store.add_rate("USD", "EUR", "2024-02-01", "0.9")

    result = await _aggregate(store)

    assert [p.rate_approximated for p in result.points] == [True, False, False]
    assert result.approximated_points == 1
    assert result.points[0].total_assets == Decimal("90")


@pytest.mark.asyncio
async def test_no_intermediate_rounding(store):
    store.add_account("gbp", currency="GBP")
    for i in range(1, 4):
        store.add_account(f"eur{i}", currency="EUR")
        store.add_balance(f"eur{i}", "2024-01-01", "0.10")
    store.add_balance("gbp", "2024-01-01", "100")
    store.add_rate("EUR", "GBP", "2024-01-01", "3")

    result = await _aggregate(store, sampling=_sampling(date(2024, 1, 15)))

    total = result.points[0].total_assets
    assert total != total.quantize(Decimal("0.01"))
    assert total.quantize(Decimal("0.01")) == Decimal("33.63")


@pytest.mark.asyncio
async def test_empty_account_list(store):
    result = await _aggregate(store)
    assert [p.net_worth for p in result.points] == [Decimal("0")] * 3
    assert [p.accounts_counted for p in result.points] == [0, 0, 0]


def test_concurrency_must_be_positive(store):
    with pytest.raises(ValueError):
        NetWorthAggregator(ExchangeRateResolver(store), max_concurrency=0)
