"""
Tests for the asset catalog.
"""

from sqlalchemy import select

from price_collector.db import session_scope
from price_collector.models import Asset
from price_collector.services.catalog import (
    current_price,
    find_by_external_id,
    top_n_by_rank,
    upsert_from_snapshot,
)


def _entry(coin_id, price=100.0, rank=1, **extra):
    entry = {
        "id": coin_id,
        "symbol": coin_id[:3],
        "name": coin_id.title(),
        "current_price": price,
        "market_cap": 1_000_000.0,
        "total_volume": 5_000.0,
        "price_change_24h": -1.5,
        "image": f"http://img/{coin_id}.png",
        "market_cap_rank": rank,
    }
    entry.update(extra)
    return entry


def _assets():
    with session_scope() as session:
        return session.execute(select(Asset).order_by(Asset.id)).scalars().all()


def test_creates_then_overwrites_all_market_fields():
    assert upsert_from_snapshot([_entry("bitcoin", price=50_000.0)]) == 1

    touched = upsert_from_snapshot(
        [_entry("bitcoin", price=None, rank=2, market_cap=None, image=None, name="Bitcoin Core")]
    )

    assets = _assets()
    assert touched == 1
    assert len(assets) == 1
    asset = assets[0]
    assert asset.external_id == "bitcoin"
    assert asset.name == "Bitcoin Core"
    assert asset.current_price is None
    assert asset.market_cap is None
    assert asset.image_url is None
    assert asset.market_cap_rank == 2
    assert asset.last_synced_at is not None


def test_malformed_entries_are_skipped_without_aborting_the_snapshot():
    entries = [
        _entry("bitcoin", rank=1),
        {"symbol": "zzz", "current_price": 1.0},  # sin id
        {"id": "   ", "current_price": 1.0},
        "not-a-dict",
        _entry("ethereum", rank=2, current_price="not-a-number"),
        _entry("solana", rank=3),
    ]

    touched = upsert_from_snapshot(entries)

    assert touched == 2
    assert [asset.external_id for asset in _assets()] == ["bitcoin", "solana"]


def test_name_falls_back_to_external_id():
    upsert_from_snapshot([{"id": "mystery-coin", "current_price": 1.0}])

    with session_scope() as session:
        asset = find_by_external_id(session, "mystery-coin")
        assert asset.name == "mystery-coin"


def test_none_or_empty_snapshot_touches_nothing():
    assert upsert_from_snapshot(None) == 0
    assert upsert_from_snapshot([]) == 0
    assert _assets() == []


def test_after_upsert_runs_in_the_same_transaction():
    seen = []

    def _hook(session, asset):
        seen.append(asset.external_id)
        if asset.external_id == "ethereum":
            raise RuntimeError("boom")

    touched = upsert_from_snapshot([_entry("bitcoin", rank=1), _entry("ethereum", rank=2)], after_upsert=_hook)

    assert seen == ["bitcoin", "ethereum"]
    assert touched == 1
    # El fallo del hook deshace tambien el activo de esa entrada.
    assert [asset.external_id for asset in _assets()] == ["bitcoin"]


def test_top_n_by_rank_orders_ascending_with_unranked_last(make_asset):
    make_asset("unranked", rank=None)
    make_asset("third", rank=3)
    make_asset("first", rank=1)
    make_asset("second", rank=2)

    with session_scope() as session:
        ordered = [asset.external_id for asset in top_n_by_rank(session, 10)]
        limited = [asset.external_id for asset in top_n_by_rank(session, 2)]

    assert ordered == ["first", "second", "third", "unranked"]
    assert limited == ["first", "second"]


def test_current_price_absent_is_not_an_error(make_asset):
    priced = make_asset("bitcoin", rank=1, price=42.0)
    unpriced = make_asset("newcoin", rank=2, price=None)

    with session_scope() as session:
        assert current_price(session, priced) == 42.0
        assert current_price(session, unpriced) is None
        assert current_price(session, 9999) is None
