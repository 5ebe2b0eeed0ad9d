"""
Request and response models for the Arena402 HTTP API
"""

from typing import Any, Dict, Optional
from pydantic import BaseModel, Field

from arena402.models import AccessGrant, PaywallConfig


class ConfigurePaywallRequest(BaseModel):
    """Create or update the paywall on one of the caller's blocks"""
    blockId: int = Field(gt=0)
    priceUsdc: str = Field(description="Decimal USDC price as a string, e.g. '0.05'")
    recipientWallet: Optional[str] = Field(default=None, description="Defaults to the wallet on file")

    class Config:
        json_schema_extra = {
            "example": {
                "blockId": 42,
                "priceUsdc": "0.05",
                "recipientWallet": "0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb1",
            }
        }


class UpdatePaywallRequest(BaseModel):
    priceUsdc: Optional[str] = None
    recipientWallet: Optional[str] = None
    active: Optional[bool] = None


class WalletUpdateRequest(BaseModel):
    walletAddress: str


class AdminGrantRequest(BaseModel):
    blockId: int = Field(gt=0)
    payerAddress: str
    paymentRecordId: Optional[str] = None


class X402Manifest(BaseModel):
    """x402 protocol manifest"""
    version: str = "2"
    name: str = "Arena402"
    description: str = "Pay-per-block access to Are.na content"
    payment_methods: list[str] = ["x402-exact-usdc"]
    supported_networks: list[str]
    asset: str
    facilitator: str
    endpoints: Dict[str, str]


def paywall_view(paywall: PaywallConfig) -> Dict[str, Any]:
    return {
        "id": paywall.id,
        "blockId": paywall.content_id,
        "priceUsdc": f"{paywall.price_usdc:.6f}",
        "currency": "USDC",
        "recipientWallet": paywall.payout_address,
        "ownerUsername": paywall.owner_username,
        "ownerSlug": paywall.owner_slug,
        "active": paywall.active,
        "createdAt": paywall.created_at.isoformat(),
        "updatedAt": paywall.updated_at.isoformat(),
    }


def grant_view(grant: AccessGrant) -> Dict[str, Any]:
    return {
        "id": grant.id,
        "blockId": grant.content_id,
        "payerAddress": grant.payer_address,
        "paymentId": grant.payment_record_id,
        "grantedAt": grant.granted_at.isoformat(),
    }
