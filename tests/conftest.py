"""
Test configuration for the price collector tests.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Add project root to path before importing our modules
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from price_collector import config, db  # noqa: E402
from price_collector.db import session_scope  # noqa: E402
from price_collector.models import Asset, PriceAlert, User  # noqa: E402


@pytest.fixture(autouse=True)
def test_settings(tmp_path, monkeypatch):
    """Point every test at its own SQLite file and a clean settings cache."""
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'collector.db'}")
    monkeypatch.setenv("SYNC_ENABLE_SCHEDULER", "false")
    monkeypatch.setenv("SYNC_VS_CURRENCY", "usd")
    monkeypatch.setenv("BACKFILL_PAUSE_SECONDS", "0")
    monkeypatch.setenv("FRONTEND_URL", "http://localhost:3000")
    monkeypatch.delenv("MAIL_HOST", raising=False)
    config.get_settings.cache_clear()
    db.dispose_engine()
    yield config.get_settings()
    db.dispose_engine()
    config.get_settings.cache_clear()


class RecordingNotifier:
    """Notifier double that keeps every message it was asked to send."""

    def __init__(self, result: bool = True) -> None:
        self.result = result
        self.sent: list[tuple[str, str, str]] = []

    def send(self, to_address: str, subject: str, html_body: str) -> bool:
        self.sent.append((to_address, subject, html_body))
        return self.result


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def make_asset():
    """Insert a catalog row and return its primary key."""

    def _make(external_id: str, rank: int | None = None, price: float | None = None) -> int:
        with session_scope() as session:
            asset = Asset(
                external_id=external_id,
                symbol=external_id[:3],
                name=external_id.title(),
                current_price=price,
                market_cap_rank=rank,
            )
            session.add(asset)
            session.flush()
            return asset.id

    return _make


@pytest.fixture
def make_user():
    def _make(user_id: int, email: str | None) -> int:
        with session_scope() as session:
            session.add(User(id=user_id, email=email))
        return user_id

    return _make


@pytest.fixture
def make_alert():
    def _make(user_id: int, asset_id: int, high: float | None = None, low: float | None = None, active: bool = True) -> int:
        with session_scope() as session:
            alert = PriceAlert(
                user_id=user_id,
                asset_id=asset_id,
                threshold_high=high,
                threshold_low=low,
                active=active,
            )
            session.add(alert)
            session.flush()
            return alert.id

    return _make

