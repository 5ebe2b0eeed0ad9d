"""
Base64 JSON header codec for x402 messages
"""

import base64
import binascii

from pydantic import BaseModel, ValidationError

from arena402.errors import MalformedProof
from arena402.payments.models import PaymentPayload, PaymentRequired, SettlementReceipt

# Proof headers larger than this are rejected before decoding
MAX_PROOF_HEADER_BYTES = 16 * 1024


def encode_header(message: BaseModel) -> str:
    """Encode an x402 message as base64 for an HTTP header"""
    return base64.b64encode(
        message.model_dump_json(by_alias=True, exclude_none=True).encode()
    ).decode()


def decode_payment_payload(encoded: str) -> PaymentPayload:
    """
    Decode a base64 PaymentPayload from the X-Payment request header.
    Raises MalformedProof for anything that is not a structured v2 payload.
    """
    if not encoded or not encoded.strip():
        raise MalformedProof("Empty payment header")
    if len(encoded) > MAX_PROOF_HEADER_BYTES:
        raise MalformedProof("Payment header too large", size=len(encoded))

    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode()
    except (binascii.Error, UnicodeDecodeError) as e:
        raise MalformedProof("Invalid payment header format", reason=str(e)) from e

    try:
        return PaymentPayload.model_validate_json(decoded)
    except ValidationError as e:
        raise MalformedProof(
            "Payment header is not a valid x402 payment payload",
            reason=e.errors(include_url=False)[0]["msg"],
        ) from e


def decode_payment_required(encoded: str) -> PaymentRequired:
    """Decode base64 PaymentRequired from the X-Payment response header"""
    decoded = base64.b64decode(encoded).decode()
    return PaymentRequired.model_validate_json(decoded)


def decode_settlement_receipt(encoded: str) -> SettlementReceipt:
    """Decode base64 SettlementReceipt from the X-Payment-Receipt response header"""
    decoded = base64.b64decode(encoded).decode()
    return SettlementReceipt.model_validate_json(decoded)
