"""
Arena402 Payment Module
x402 v2 wire models, header codec and facilitator client for USDC on Base
"""

from arena402.payments.codec import decode_payment_payload, decode_payment_required, encode_header
from arena402.payments.facilitator import FacilitatorClient, SettlementOracle
from arena402.payments.models import (
    PaymentAuthorization,
    PaymentPayload,
    PaymentRequired,
    PaymentRequirements,
    SettleResponse,
    SettlementReceipt,
    VerifyResponse,
)

__all__ = [
    "FacilitatorClient",
    "PaymentAuthorization",
    "PaymentPayload",
    "PaymentRequired",
    "PaymentRequirements",
    "SettleResponse",
    "SettlementOracle",
    "SettlementReceipt",
    "VerifyResponse",
    "decode_payment_payload",
    "decode_payment_required",
    "encode_header",
]
