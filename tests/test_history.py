"""
Tests for the price history store.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from price_collector.db import session_scope
from price_collector.models import PricePoint
from price_collector.services import MalformedEntry
from price_collector.services.history import (
    count_distinct_assets_covered,
    get_recent_series,
    has_any_point,
    query_series,
    upsert_point,
)

TS = datetime(2025, 1, 15, 12, 30, tzinfo=timezone.utc)


def _rows():
    with session_scope() as session:
        return session.execute(select(PricePoint).order_by(PricePoint.ts)).scalars().all()


class TestUpsertPoint:
    def test_same_key_twice_keeps_one_row_with_last_values(self, make_asset):
        asset_id = make_asset("bitcoin", rank=1)

        with session_scope() as session:
            upsert_point(session, asset_id, "usd", TS, 100.0, 1_000.0, 10.0)
        with session_scope() as session:
            upsert_point(session, asset_id, "usd", TS, 120.0, None, 12.0)

        rows = _rows()
        assert len(rows) == 1
        assert rows[0].price == 120.0
        assert rows[0].market_cap is None
        assert rows[0].total_volume == 12.0

    def test_identical_values_are_idempotent(self, make_asset):
        asset_id = make_asset("bitcoin", rank=1)

        for _ in range(3):
            with session_scope() as session:
                upsert_point(session, asset_id, "usd", TS, 100.0)

        assert len(_rows()) == 1

    def test_currency_and_timestamp_are_part_of_the_key(self, make_asset):
        asset_id = make_asset("bitcoin", rank=1)

        with session_scope() as session:
            upsert_point(session, asset_id, "usd", TS, 100.0)
            upsert_point(session, asset_id, "eur", TS, 90.0)
            upsert_point(session, asset_id, "usd", TS + timedelta(minutes=1), 101.0)

        assert len(_rows()) == 3

    def test_missing_price_is_rejected(self, make_asset):
        asset_id = make_asset("bitcoin", rank=1)

        with pytest.raises(MalformedEntry):
            with session_scope() as session:
                upsert_point(session, asset_id, "usd", TS, None)


class TestCoverage:
    def test_has_any_point_is_per_currency(self, make_asset):
        asset_id = make_asset("bitcoin", rank=1)
        with session_scope() as session:
            upsert_point(session, asset_id, "usd", TS, 100.0)

        with session_scope() as session:
            assert has_any_point(session, asset_id, "usd") is True
            assert has_any_point(session, asset_id, "USD") is True
            assert has_any_point(session, asset_id, "eur") is False

    def test_count_distinct_assets_covered(self, make_asset):
        btc = make_asset("bitcoin", rank=1)
        eth = make_asset("ethereum", rank=2)
        make_asset("solana", rank=3)

        with session_scope() as session:
            upsert_point(session, btc, "usd", TS, 100.0)
            upsert_point(session, btc, "usd", TS + timedelta(hours=1), 101.0)
            upsert_point(session, eth, "usd", TS, 10.0)
            upsert_point(session, eth, "eur", TS, 9.0)

        with session_scope() as session:
            assert count_distinct_assets_covered(session, "usd") == 2
            assert count_distinct_assets_covered(session, "eur") == 1
            assert count_distinct_assets_covered(session, "gbp") == 0


class TestQuerySeries:
    def test_ascending_and_inclusive_of_start(self, make_asset):
        asset_id = make_asset("bitcoin", rank=1)
        with session_scope() as session:
            upsert_point(session, asset_id, "usd", TS + timedelta(hours=2), 102.0)
            upsert_point(session, asset_id, "usd", TS, 100.0)
            upsert_point(session, asset_id, "usd", TS + timedelta(hours=1), 101.0)
            upsert_point(session, asset_id, "usd", TS - timedelta(hours=1), 99.0)

        with session_scope() as session:
            series = query_series(session, asset_id, "usd", TS)

        assert [price for _, price in series] == [100.0, 101.0, 102.0]
        assert series[0][0] == TS
        assert all(ts.tzinfo is not None for ts, _ in series)

    def test_empty_when_nothing_matches(self, make_asset):
        asset_id = make_asset("bitcoin", rank=1)

        with session_scope() as session:
            assert query_series(session, asset_id, "usd", TS) == []
            assert query_series(session, 9999, "usd", TS) == []


class TestRecentSeries:
    def test_unknown_asset_returns_empty_list(self):
        assert get_recent_series("does-not-exist", "usd") == []

    def test_returns_milliseconds_within_window(self, make_asset):
        asset_id = make_asset("bitcoin", rank=1)
        now = datetime.now(timezone.utc).replace(microsecond=0)
        with session_scope() as session:
            upsert_point(session, asset_id, "usd", now - timedelta(days=10), 1.0)
            upsert_point(session, asset_id, "usd", now - timedelta(days=1), 2.0)

        series = get_recent_series("bitcoin", "usd", days=7)

        assert series == [{"timestamp": int((now - timedelta(days=1)).timestamp() * 1000), "price": 2.0}]
