"""
Tests for the market snapshot synchronisation.
"""

import pytest
from sqlalchemy import func, select

from price_collector.db import session_scope
from price_collector.models import Asset, PricePoint
from price_collector.services import RateLimited, sync_market_data
from price_collector.services.history import as_utc


@pytest.fixture
def snapshot(monkeypatch):
    """Replace the CoinGecko markets call with a canned snapshot."""
    calls = []
    payload = {"data": []}

    def _fake_fetch(vs_currency="usd", page=1, per_page=100, order="market_cap_desc"):
        calls.append({"vs_currency": vs_currency, "page": page, "per_page": per_page})
        return payload["data"]

    monkeypatch.setattr("price_collector.services.sync.fetch_top_markets", _fake_fetch)

    def _set(data):
        payload["data"] = data
        return calls

    return _set


def _counts():
    with session_scope() as session:
        assets = session.execute(select(func.count(Asset.id))).scalar_one()
        points = session.execute(select(func.count(PricePoint.id))).scalar_one()
    return assets, points


def test_write_now_stores_catalog_row_and_one_point(snapshot):
    calls = snapshot([{"id": "bitcoin", "symbol": "btc", "name": "Bitcoin", "current_price": 50000}])

    touched = sync_market_data(write_now=True)

    assert touched == 1
    assert calls == [{"vs_currency": "usd", "page": 1, "per_page": 100}]
    with session_scope() as session:
        asset = session.execute(select(Asset)).scalar_one()
        point = session.execute(select(PricePoint)).scalar_one()

    assert asset.external_id == "bitcoin"
    assert asset.current_price == 50000
    assert point.asset_id == asset.id
    assert point.vs_currency == "usd"
    assert point.price == 50000
    ts = as_utc(point.ts)
    assert ts.second == 0 and ts.microsecond == 0


def test_all_points_of_a_run_share_the_same_instant(snapshot):
    snapshot(
        [
            {"id": "bitcoin", "current_price": 50000, "market_cap_rank": 1},
            {"id": "ethereum", "current_price": 3000, "market_cap_rank": 2},
            {"id": "solana", "current_price": 150, "market_cap_rank": 3},
        ]
    )

    sync_market_data(write_now=True)

    with session_scope() as session:
        stamps = set(session.execute(select(PricePoint.ts)).scalars().all())
    assert len(stamps) == 1


def test_repeated_sync_within_a_minute_does_not_duplicate(snapshot):
    snapshot([{"id": "bitcoin", "current_price": 50000}])
    sync_market_data(write_now=True)

    snapshot([{"id": "bitcoin", "current_price": 51000}])
    sync_market_data(write_now=True)

    assets, points = _counts()
    assert assets == 1
    # Mismo minuto (o el siguiente, si el reloj cambio entre llamadas): nunca mas de un punto por minuto.
    assert points in (1, 2)
    with session_scope() as session:
        latest = session.execute(select(PricePoint).order_by(PricePoint.ts.desc())).scalars().first()
    assert latest.price == 51000


def test_catalog_only_mode_writes_no_points(snapshot):
    snapshot([{"id": "bitcoin", "current_price": 50000}])

    assert sync_market_data(write_now=False) == 1

    assert _counts() == (1, 0)


def test_assets_without_price_get_no_point(snapshot):
    snapshot(
        [
            {"id": "bitcoin", "current_price": 50000},
            {"id": "fresh-listing", "current_price": None},
        ]
    )

    assert sync_market_data(write_now=True) == 2

    assert _counts() == (2, 1)


def test_empty_snapshot_is_a_noop(snapshot):
    snapshot([{"id": "bitcoin", "current_price": 50000}])
    sync_market_data(write_now=True)
    before = _counts()

    snapshot([])
    assert sync_market_data(write_now=True) == 0

    assert _counts() == before


def test_none_snapshot_is_a_noop(snapshot):
    snapshot(None)

    assert sync_market_data(write_now=True) == 0
    assert _counts() == (0, 0)


def test_rate_limit_propagates_to_the_caller(monkeypatch):
    def _limited(**_):
        raise RateLimited("429")

    monkeypatch.setattr("price_collector.services.sync.fetch_top_markets", _limited)

    with pytest.raises(RateLimited):
        sync_market_data(write_now=True)
