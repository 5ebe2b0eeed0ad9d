from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
import structlog

from arena402.errors import InvalidAddress
from arena402.server.dependencies import get_services, require_admin
from arena402.server.models import AdminGrantRequest, grant_view
from arena402.server.services import GatewayServices
from arena402.users import is_valid_wallet_address

logger = structlog.get_logger()

router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


@router.post("/grants", status_code=status.HTTP_201_CREATED)
async def create_grant(body: AdminGrantRequest, services: GatewayServices = Depends(get_services)):
    """Grant access without a payment"""
    if not is_valid_wallet_address(body.payerAddress):
        raise InvalidAddress("Invalid payer address", payer_address=body.payerAddress)

    grant = await services.ledger.grant(body.blockId, body.payerAddress, payment_record_id=body.paymentRecordId)
    logger.info("admin_grant_created", block_id=body.blockId, payer=grant.payer_address)
    return JSONResponse(status_code=status.HTTP_201_CREATED, content={"grant": grant_view(grant)})


@router.delete("/grants")
async def revoke_grant(
    block_id: int = Query(alias="blockId"),
    payer_address: str = Query(alias="payerAddress"),
    services: GatewayServices = Depends(get_services),
):
    removed = await services.ledger.revoke(block_id, payer_address)
    return {"blockId": block_id, "payerAddress": payer_address.lower(), "revoked": removed}


@router.get("/grants/{block_id}")
async def list_grants(block_id: int, services: GatewayServices = Depends(get_services)):
    grants = await services.ledger.grants_for_content(block_id)
    return {"grants": [grant_view(g) for g in grants]}


@router.get("/payments/{block_id}")
async def list_payments(block_id: int, services: GatewayServices = Depends(get_services)):
    """Full payment history of a block's paywall, failures included"""
    paywall = await services.registry.get(block_id)
    if paywall is None:
        return {"payments": []}
    payments = await services.payments.list_by_paywall(paywall.id)
    return {"payments": [p.model_dump(mode="json") for p in payments]}
