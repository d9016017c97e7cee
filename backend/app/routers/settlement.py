"""Settlement trigger endpoints for an external scheduler or an operator."""

import hmac
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, status

from app.config import settings
from app.models.bet import SettleBetRequest, SettleBetResponse, SettlementSummary
from app.workers.settlement_runner import SettlementError, run_settlement_pass, settle_single_bet

logger = logging.getLogger("betledger.routers.settlement")

router = APIRouter(prefix="/api/bets", tags=["settlement"])


async def verify_settlement_key(x_settlement_key: str | None = Header(default=None)) -> None:
    expected = settings.SETTLEMENT_API_KEY
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Settlement trigger is not configured.",
        )
    if not x_settlement_key or not hmac.compare_digest(x_settlement_key, expected):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid settlement key.")


@router.post(
    "/settle-all",
    response_model=SettlementSummary,
    dependencies=[Depends(verify_settlement_key)],
)
async def settle_all():
    """Run one settlement pass over every eligible pending bet."""
    return await run_settlement_pass()


@router.post(
    "/settle",
    response_model=SettleBetResponse,
    dependencies=[Depends(verify_settlement_key)],
)
async def settle_one(body: SettleBetRequest):
    try:
        bet, message = await settle_single_bet(body.bet_id)
    except SettlementError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    logger.info("Manual settle %s: %s", body.bet_id, message)
    return SettleBetResponse(bet=bet, message=message)
