"""
Buyer-side x402 payment signing
Signs EIP-3009 transferWithAuthorization messages for the exact EVM scheme
"""

import secrets
import time
from typing import Optional

from eth_account import Account
from eth_account.messages import encode_typed_data
from web3 import Web3
import structlog

from arena402.payments.models import (
    PaymentAuthorization,
    PaymentPayload,
    PaymentRequired,
    PaymentRequirements,
)

logger = structlog.get_logger()

CHAIN_IDS = {
    "eip155:8453": 8453,  # Base mainnet
    "eip155:84532": 84532,  # Base Sepolia
}


def chain_id_for(network: str) -> int:
    """Chain id from a CAIP-2 network identifier"""
    if network in CHAIN_IDS:
        return CHAIN_IDS[network]
    namespace, _, reference = network.partition(":")
    if namespace != "eip155" or not reference.isdigit():
        raise ValueError(f"Unsupported network: {network}")
    return int(reference)


def create_typed_data(authorization: PaymentAuthorization, requirements: PaymentRequirements) -> dict:
    """Create EIP-712 typed data for a payment authorization"""
    return {
        "types": {
            "EIP712Domain": [
                {"name": "name", "type": "string"},
                {"name": "version", "type": "string"},
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
            "TransferWithAuthorization": [
                {"name": "from", "type": "address"},
                {"name": "to", "type": "address"},
                {"name": "value", "type": "uint256"},
                {"name": "validAfter", "type": "uint256"},
                {"name": "validBefore", "type": "uint256"},
                {"name": "nonce", "type": "bytes32"},
            ],
        },
        "primaryType": "TransferWithAuthorization",
        "domain": {
            "name": requirements.extra.get("name", "USD Coin"),
            "version": requirements.extra.get("version", "2"),
            "chainId": chain_id_for(requirements.network),
            "verifyingContract": Web3.to_checksum_address(requirements.asset),
        },
        "message": {
            "from": Web3.to_checksum_address(authorization.from_address),
            "to": Web3.to_checksum_address(authorization.to),
            "value": int(authorization.value),
            "validAfter": int(authorization.valid_after),
            "validBefore": int(authorization.valid_before),
            "nonce": authorization.nonce,
        },
    }


class PaymentSigner:
    """Signs x402 payment authorizations with a local private key"""

    def __init__(self, private_key: str):
        self.account = Account.from_key(private_key)
        self.address = self.account.address

    def sign(
        self,
        payment_required: PaymentRequired,
        valid_for_seconds: Optional[int] = None,
    ) -> PaymentPayload:
        """
        Sign a payment authorization in response to a 402 Payment Required.

        Args:
            payment_required: The challenge from the gateway
            valid_for_seconds: Authorization lifetime (defaults to maxTimeoutSeconds)

        Returns:
            PaymentPayload ready to base64-encode into X-Payment
        """
        if not payment_required.accepts:
            raise ValueError("No payment options available")

        requirements = payment_required.accepts[0]
        if requirements.scheme != "exact":
            raise ValueError(f"Unsupported payment scheme: {requirements.scheme}")

        lifetime = valid_for_seconds or requirements.maxTimeoutSeconds
        now = int(time.time())

        authorization = PaymentAuthorization(
            from_address=self.address,
            to=Web3.to_checksum_address(requirements.payTo),
            value=requirements.amount,
            valid_after=str(now - 600),
            valid_before=str(now + lifetime),
            nonce="0x" + secrets.token_hex(32),
        )

        typed_data = create_typed_data(authorization, requirements)
        signed = self.account.sign_message(encode_typed_data(full_message=typed_data))

        logger.info(
            "payment_signed",
            payer=self.address,
            pay_to=requirements.payTo,
            amount=requirements.amount,
            resource=requirements.resource,
        )

        return PaymentPayload(
            resource=payment_required.resource,
            accepted=requirements,
            payload={
                "signature": Web3.to_hex(signed.signature),
                "authorization": authorization.model_dump(by_alias=True),
            },
        )
