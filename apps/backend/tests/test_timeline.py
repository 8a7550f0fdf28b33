"""Tests for BalanceTimeline (LOCF lookups)."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from networth.history.timeline import BalanceTimeline
from networth.stores.base import BalancePoint


def _points(account_id: str, *entries: tuple[str, str]) -> list[BalancePoint]:
    return [
        BalancePoint(account_id, date.fromisoformat(on), Decimal(amount))
        for on, amount in entries
    ]


class TestLatestAtOrBefore:
    """Last-observation-carried-forward semantics."""

    def setup_method(self) -> None:
        self.timeline = BalanceTimeline.from_entries({
            "acc": _points("acc", ("2024-01-10", "100"), ("2024-02-10", "250")),
        })

    def test_absent_before_first_entry(self) -> None:
        assert self.timeline.latest_at_or_before("acc", date(2024, 1, 9)) is None

    def test_entry_date_is_inclusive(self) -> None:
        assert self.timeline.latest_at_or_before("acc", date(2024, 1, 10)) == Decimal("100")

    def test_carries_forward_between_entries(self) -> None:
        assert self.timeline.latest_at_or_before("acc", date(2024, 2, 9)) == Decimal("100")

    def test_later_entry_supersedes(self) -> None:
        assert self.timeline.latest_at_or_before("acc", date(2024, 2, 10)) == Decimal("250")
        assert self.timeline.latest_at_or_before("acc", date(2030, 1, 1)) == Decimal("250")

    def test_unknown_account_is_absent(self) -> None:
        assert self.timeline.latest_at_or_before("missing", date(2024, 3, 1)) is None

    def test_backwards_query_repositions_cursor(self) -> None:
        assert self.timeline.latest_at_or_before("acc", date(2024, 3, 1)) == Decimal("250")
        assert self.timeline.latest_at_or_before("acc", date(2024, 1, 15)) == Decimal("100")
        assert self.timeline.latest_at_or_before("acc", date(2024, 1, 1)) is None
        assert self.timeline.latest_at_or_before("acc", date(2024, 2, 20)) == Decimal("250")


class TestSweep:
    """Ascending sweeps across several accounts."""

    def test_daily_sweep_matches_brute_force(self) -> None:
        entries = {
            "a": _points("a", ("2024-01-03", "10"), ("2024-01-07", "20"), ("2024-01-20", "5")),
            "b": _points("b", ("2024-01-15", "300")),
            "c": [],
        }
        timeline = BalanceTimeline.from_entries(entries)

        start = date(2024, 1, 1)
        for offset in range(31):
            on = start + timedelta(days=offset)
            for account_id, points in entries.items():
                expected = None
                for p in points:
                    if p.date <= on:
                        expected = p.amount
                assert timeline.latest_at_or_before(account_id, on) == expected

    def test_unsorted_input_is_ordered(self) -> None:
        timeline = BalanceTimeline.from_entries({
            "a": _points("a", ("2024-05-01", "2"), ("2024-04-01", "1")),
        })
        assert timeline.first_date("a") == date(2024, 4, 1)
        assert timeline.latest_at_or_before("a", date(2024, 4, 15)) == Decimal("1")

    def test_first_date_and_counts(self) -> None:
        timeline = BalanceTimeline.from_entries({
            "a": _points("a", ("2024-01-03", "10")),
            "empty": [],
        })
        assert timeline.first_date("a") == date(2024, 1, 3)
        assert timeline.first_date("empty") is None
        assert timeline.entry_count("a") == 1
        assert "empty" in timeline

    def test_duplicate_account_registration_rejected(self) -> None:
        timeline = BalanceTimeline()
        timeline.add_account("a", [])
        with pytest.raises(ValueError):
            timeline.add_account("a", [])
