"""
backend/app/services/notification_service.py

Purpose:
    "Bet Settled" messages posted to the Discord / Whop webhooks of a
    company's owners and admins.

Notes:
    Fire-and-forget. Nothing in here may raise into the settlement path;
    every failure is logged and dropped.
"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional

import httpx

from app.config import settings
from app.models.bet import BetInDB, BetResult, MarketType
from app.models.user import UserInDB
from app.providers.http_client import safe_url
from app.services import bet_repository
from app.utils import ensure_utc
from app.utils.odds_utils import format_odds, format_units

logger = logging.getLogger("betledger.notifications")

OUTCOME_EMOJI = {
    BetResult.win: "✅",
    BetResult.loss: "❌",
    BetResult.push: "➖",
    BetResult.void: "⚪",
    BetResult.pending: "⏳",
}


def format_date(value: datetime) -> str:
    return ensure_utc(value).strftime("%b %d, %H:%M UTC")


def event_label(bet: BetInDB) -> str:
    if bet.event_name:
        return bet.event_name
    if bet.home_team or bet.away_team:
        return f"{bet.away_team or 'TBD'} @ {bet.home_team or 'TBD'}"
    return "Event"


def _signed(line: float) -> str:
    return f"+{line:g}" if line > 0 else f"{line:g}"


def _parlay_summary(summary) -> str:
    if isinstance(summary, str):
        return summary.strip()
    if isinstance(summary, dict):
        summary = list(summary.values())
    if isinstance(summary, list):
        parts = []
        for item in summary:
            if isinstance(item, dict):
                item = " ".join(str(v) for v in item.values())
            if item:
                parts.append(str(item))
        return " + ".join(parts)
    return ""


def market_label(bet: BetInDB) -> str:
    market = bet.market_type
    if market is MarketType.ml:
        return f"Moneyline – {bet.selection}" if bet.selection else "Moneyline"
    if market is MarketType.spread:
        if bet.selection and bet.line is not None:
            return f"Spread – {bet.selection} {_signed(bet.line)}"
        return "Spread"
    if market is MarketType.total:
        if bet.line is not None and bet.over_under:
            return f"Total – {bet.over_under.value} {bet.line:g}"
        return "Total"
    if market is MarketType.player_prop:
        if bet.player_name and bet.stat_type:
            label = f"Player Prop – {bet.player_name} {bet.stat_type}"
            if bet.line is not None:
                side = bet.over_under.value if bet.over_under else ""
                label += f" {side} {bet.line:g}"
            return label
        return "Player Prop"
    if market is MarketType.parlay:
        summary = _parlay_summary(bet.parlay_summary)
        return f"Parlay – {summary}" if summary else "Parlay"
    return market.value


def format_settled_message(
    bet: BetInDB,
    result: BetResult,
    user: Optional[UserInDB] = None,
    legs: Optional[list[BetInDB]] = None,
) -> str:
    lines = [
        f"{OUTCOME_EMOJI[result]} **Bet Settled – {result.value.upper()}**",
        f"User: {user.display_name if user else 'Unknown bettor'}",
        f"Event: {event_label(bet)}",
        f"Market: {market_label(bet)}",
        f"Stake: {format_units(bet.units)}",
        f"Odds: {format_odds(bet.odds, bet.odds_american)}",
    ]
    if legs:
        lines.append("Legs:")
        for index, leg in enumerate(legs, start=1):
            lines.append(
                f"• Leg {index}: {event_label(leg)} – {format_date(leg.start_time)}\n"
                f"    {market_label(leg)}"
            )
    return "\n".join(lines)


async def _post_webhook(client: httpx.AsyncClient, url: str, message: str) -> None:
    try:
        resp = await client.post(url, json={"content": message})
        if resp.status_code >= 400:
            logger.debug("Webhook %s rejected message: %d", safe_url(url), resp.status_code)
    except httpx.HTTPError as exc:
        logger.debug("Webhook %s failed: %s", safe_url(url), exc)


async def send_company_message(
    message: str,
    company_id: Optional[str],
    *,
    client_factory: Callable[[], httpx.AsyncClient] | None = None,
) -> int:
    """Post ``message`` to every owner/admin webhook of the company. Returns webhooks attempted."""
    if not company_id or not message.strip() or not settings.NOTIFICATIONS_ENABLED:
        return 0

    admins = await bet_repository.find_company_admins(company_id)
    urls = [
        url
        for admin in admins
        for url in (admin.discord_webhook_url, admin.whop_webhook_url)
        if url
    ]
    if not urls:
        return 0

    factory = client_factory or (
        lambda: httpx.AsyncClient(timeout=settings.NOTIFICATION_TIMEOUT_SECONDS)
    )
    async with factory() as client:
        await asyncio.gather(*(_post_webhook(client, url, message) for url in urls))
    return len(urls)


async def notify_bet_settled(
    bet: BetInDB,
    result: BetResult,
    user: Optional[UserInDB] = None,
    *,
    sender: Callable[[str, Optional[str]], Awaitable[int]] | None = None,
) -> None:
    try:
        company_id = bet.company_id or (user.company_id if user else None)
        if not company_id:
            return
        legs = await bet_repository.find_legs(bet.id) if bet.market_type is MarketType.parlay else None
        message = format_settled_message(bet, result, user, legs)
        await (sender or send_company_message)(message, company_id)
    except Exception:
        logger.warning("Settlement notification failed for bet %s", bet.id, exc_info=True)
