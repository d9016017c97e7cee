"""
backend/tests/test_notification_service.py

Purpose:
    "Bet Settled" message formatting and webhook fan-out to company admins.

Dependencies:
    - app.services.notification_service
"""

from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace

import httpx
import pytest

from app.models.bet import BetInDB, BetResult, MarketType
from app.models.user import UserInDB
from app.services import notification_service
from app.services.notification_service import (
    format_settled_message,
    market_label,
    notify_bet_settled,
    send_company_message,
)

START = datetime(2025, 1, 15, 0, 30, tzinfo=timezone.utc)


def _bet(**overrides) -> BetInDB:
    data = {
        "id": "bet-1",
        "user_id": "user-1",
        "company_id": "co-1",
        "market_type": MarketType.ml,
        "home_team": "Los Angeles Lakers",
        "away_team": "Boston Celtics",
        "selection": "Los Angeles Lakers",
        "start_time": START,
        "odds": 1.91,
        "odds_american": -110,
        "units": 2,
    }
    data.update(overrides)
    return BetInDB(**data)


class _FakeWebhookClient:
    def __init__(self, fail_urls=()):
        self.posts: list[tuple[str, dict]] = []
        self.fail_urls = set(fail_urls)

    async def post(self, url, json=None):
        self.posts.append((url, json))
        if url in self.fail_urls:
            raise httpx.ConnectError("unreachable")
        return SimpleNamespace(status_code=204)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


def test_market_labels():
    assert market_label(_bet()) == "Moneyline – Los Angeles Lakers"
    assert market_label(_bet(market_type=MarketType.spread, line=-4.5)) == "Spread – Los Angeles Lakers -4.5"
    assert market_label(_bet(market_type=MarketType.spread, line=3)) == "Spread – Los Angeles Lakers +3"
    assert market_label(_bet(market_type=MarketType.total, line=220.5, over_under="Under")) == "Total – Under 220.5"
    prop = _bet(market_type=MarketType.player_prop, player_name="LeBron James",
                stat_type="Points", line=27.5, over_under="Over")
    assert market_label(prop) == "Player Prop – LeBron James Points Over 27.5"
    parlay = _bet(market_type=MarketType.parlay, parlay_summary=["Lakers ML", "Celtics +3"])
    assert market_label(parlay) == "Parlay – Lakers ML + Celtics +3"
    assert market_label(_bet(market_type=MarketType.parlay)) == "Parlay"


def test_settled_message():
    user = UserInDB(id="user-1", alias="sharp")
    message = format_settled_message(_bet(), BetResult.win, user)
    lines = message.split("\n")
    assert lines[0] == "✅ **Bet Settled – WIN**"
    assert "User: sharp" in lines
    assert "Event: Boston Celtics @ Los Angeles Lakers" in lines
    assert "Stake: 2 units" in lines
    assert "Odds: -110" in lines


def test_parlay_message_lists_legs():
    legs = [_bet(id="leg-1", event_name="Lakers vs Celtics"), _bet(id="leg-2", selection="Boston Celtics")]
    parlay = _bet(id="parlay", market_type=MarketType.parlay, odds_american=None, odds=3.6)
    message = format_settled_message(parlay, BetResult.loss, None, legs)
    assert "❌ **Bet Settled – LOSS**" in message
    assert "User: Unknown bettor" in message
    assert "Odds: 3.60" in message
    assert "• Leg 1: Lakers vs Celtics – Jan 15, 00:30 UTC" in message
    assert "    Moneyline – Boston Celtics" in message


@pytest.mark.asyncio
async def test_send_company_message_posts_to_every_admin_webhook(monkeypatch):
    admins = [
        UserInDB(id="a1", role="owner", discord_webhook_url="https://discord.example/hook/1"),
        UserInDB(id="a2", role="admin", discord_webhook_url="https://discord.example/hook/2",
                 whop_webhook_url="https://whop.example/hook/2"),
        UserInDB(id="a3", role="admin"),
    ]

    async def _admins(company_id):
        assert company_id == "co-1"
        return admins

    monkeypatch.setattr(notification_service.bet_repository, "find_company_admins", _admins)
    monkeypatch.setattr(notification_service.settings, "NOTIFICATIONS_ENABLED", True, raising=False)
    client = _FakeWebhookClient(fail_urls={"https://discord.example/hook/2"})

    sent = await send_company_message("hello", "co-1", client_factory=lambda: client)

    assert sent == 3
    assert sorted(url for url, _ in client.posts) == [
        "https://discord.example/hook/1",
        "https://discord.example/hook/2",
        "https://whop.example/hook/2",
    ]
    assert all(body == {"content": "hello"} for _, body in client.posts)


@pytest.mark.asyncio
async def test_send_company_message_respects_switch(monkeypatch):
    monkeypatch.setattr(notification_service.settings, "NOTIFICATIONS_ENABLED", False, raising=False)
    assert await send_company_message("hello", "co-1") == 0


@pytest.mark.asyncio
async def test_notify_never_raises(monkeypatch):
    async def _broken_sender(message, company_id):
        raise RuntimeError("webhook store down")

    await notify_bet_settled(_bet(), BetResult.win, None, sender=_broken_sender)


@pytest.mark.asyncio
async def test_notify_uses_user_company_when_bet_has_none():
    sent = []

    async def _sender(message, company_id):
        sent.append(company_id)
        return 1

    user = UserInDB(id="user-1", company_id="co-9")
    await notify_bet_settled(_bet(company_id=None), BetResult.push, user, sender=_sender)
    await notify_bet_settled(_bet(company_id=None), BetResult.push, None, sender=_sender)
    assert sent == ["co-9"]
