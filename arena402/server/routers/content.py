from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
import structlog

from arena402.auth.session import SessionClaims
from arena402.errors import ErrorKind
from arena402.payments.codec import encode_header
from arena402.paywall.gateway import Allow, Challenge
from arena402.server.dependencies import get_payment_proof, get_services, get_session, resolve_wallet
from arena402.server.errors import status_for_error
from arena402.server.services import GatewayServices

logger = structlog.get_logger()

router = APIRouter(prefix="/v2", tags=["Content"])


def _challenge_response(services: GatewayServices, challenge: Challenge, status_code: int = 402, error=None) -> JSONResponse:
    paywall = challenge.paywall
    body = challenge.payment_required.model_dump(mode="json", by_alias=True, exclude_none=True)
    body["paywall"] = {
        "blockId": paywall.content_id,
        "priceUsdc": f"{paywall.price_usdc:.6f}",
        "currency": "USDC",
        "network": services.config.network,
        "recipientWallet": paywall.payout_address,
        "ownerUsername": paywall.owner_username,
    }
    if error is not None:
        body.update(error.to_dict())
    return JSONResponse(status_code=status_code, content=body, headers={"X-Payment": challenge.header})


@router.get("/blocks/{block_id}")
async def get_block(
    block_id: int,
    services: GatewayServices = Depends(get_services),
    session: Optional[SessionClaims] = Depends(get_session),
    wallet: Optional[str] = Depends(resolve_wallet),
    proof: Optional[str] = Depends(get_payment_proof),
):
    """
    Paywalled block proxy
    Free or already-granted blocks pass through; otherwise 402 with an x402 challenge,
    or settle the X-Payment proof and then serve
    """
    gateway = services.gateway
    headers: Dict[str, str] = {}

    if proof:
        outcome = await gateway.submit_payment(
            block_id, proof, wallet=wallet, payer_user_id=session.userId if session else None
        )
        if not isinstance(outcome, Allow):
            error = outcome.error
            paywall = await services.registry.get_active(block_id)
            if paywall is None or error.kind == ErrorKind.CONFLICT:
                return JSONResponse(status_code=status_for_error(error), content=error.to_dict())
            challenge = await gateway.challenge(paywall, block_id, error=error.message)
            status_code = 402 if error.kind == ErrorKind.PAYMENT else status_for_error(error)
            return _challenge_response(services, challenge, status_code=status_code, error=error)
        if outcome.receipt is not None:
            headers["X-Payment-Receipt"] = encode_header(outcome.receipt)
        status = outcome.status
    else:
        decision = await gateway.decide(block_id, wallet)
        if isinstance(decision, Challenge):
            logger.info("block_payment_required", block_id=block_id, wallet=wallet)
            return _challenge_response(services, decision)
        status = decision.status

    block = await services.arena.get_block(block_id)
    if status is not None and status.is_paywalled:
        block["paywall"] = {
            "priceUsdc": f"{status.price_usdc:.6f}",
            "hasAccess": True,
        }
    return JSONResponse(content=block, headers=headers)


@router.get("/channels/{slug}")
async def get_channel(slug: str, services: GatewayServices = Depends(get_services)):
    """Channel info passthrough"""
    return await services.arena.get_channel(slug)


@router.get("/channels/{slug}/contents")
async def get_channel_contents(
    slug: str,
    page: int = Query(default=1, ge=1),
    per: int = Query(default=25, ge=1, le=100),
    services: GatewayServices = Depends(get_services),
    wallet: Optional[str] = Depends(resolve_wallet),
):
    """
    Channel contents annotated with paywall metadata
    One registry lookup and one grant lookup for the whole page
    """
    data: Dict[str, Any] = await services.arena.get_channel_contents(slug, page=page, per=per)
    contents = data.get("contents") or []

    block_ids = [
        item["id"] for item in contents
        if isinstance(item.get("id"), int) and item.get("base_class", "Block") == "Block"
    ]
    if not block_ids:
        return data

    summaries = await services.registry.batch_lookup(block_ids)
    accessible = await services.ledger.accessible_content(list(summaries), wallet) if summaries else set()

    for item in contents:
        summary = summaries.get(item.get("id"))
        if summary is not None:
            item["paywall"] = {
                "priceUsdc": f"{summary.price_usdc:.6f}",
                "active": summary.active,
                "hasAccess": item["id"] in accessible,
            }

    logger.debug("channel_contents_annotated", slug=slug, blocks=len(block_ids), paywalled=len(summaries))
    return data
