"""
x402-compliant payment models for Arena402
Wire shapes for challenges, proofs and facilitator responses (x402 v2)
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


X402_VERSION = 2


class ResourceInfo(BaseModel):
    """The protected resource a challenge refers to"""
    url: str
    description: Optional[str] = None
    mimeType: str = "application/json"


class PaymentRequirements(BaseModel):
    """Single payment option in x402 format"""
    model_config = ConfigDict(extra="allow")

    scheme: str = Field(default="exact", description="Payment scheme")
    network: str = Field(description="CAIP-2 network id, e.g. eip155:8453")
    amount: str = Field(description="Amount in token minor units (USDC has 6 decimals)")
    asset: str = Field(description="Token contract address")
    payTo: str = Field(description="Payout wallet address")
    resource: Optional[str] = Field(default=None, description="Canonical path of the paid resource")
    maxTimeoutSeconds: int = Field(default=300)
    extra: Dict[str, Any] = Field(default_factory=dict)


class PaymentRequired(BaseModel):
    """x402 Payment Required envelope (HTTP 402, X-Payment header)"""
    x402Version: int = X402_VERSION
    error: Optional[str] = None
    resource: Optional[ResourceInfo] = None
    accepts: List[PaymentRequirements]


class PaymentAuthorization(BaseModel):
    """EIP-3009 TransferWithAuthorization message"""
    from_address: str = Field(alias="from")
    to: str
    value: str
    valid_after: str = Field(default="0", alias="validAfter")
    valid_before: str = Field(alias="validBefore")
    nonce: str

    model_config = ConfigDict(populate_by_name=True)


class PaymentPayload(BaseModel):
    """x402 payment proof submitted by a buyer"""
    model_config = ConfigDict(extra="allow")

    x402Version: int = X402_VERSION
    resource: Optional[ResourceInfo] = None
    accepted: PaymentRequirements
    payload: Dict[str, Any] = Field(description="Contains signature and authorization")

    def claimed_payer(self) -> Optional[str]:
        """Payer address the proof itself claims, if any"""
        payer = self.payload.get("payer")
        if isinstance(payer, str) and payer:
            return payer
        authorization = self.payload.get("authorization")
        if isinstance(authorization, dict):
            sender = authorization.get("from")
            if isinstance(sender, str) and sender:
                return sender
        return None


class VerifyResponse(BaseModel):
    """Facilitator /verify answer"""
    isValid: bool
    invalidReason: Optional[str] = None
    payer: Optional[str] = None


class SettleResponse(BaseModel):
    """Facilitator /settle answer"""
    success: bool
    errorReason: Optional[str] = None
    payer: Optional[str] = None
    transaction: Optional[str] = None
    network: Optional[str] = None


class SettlementReceipt(BaseModel):
    """Outcome of a successful settlement, returned in X-Payment-Receipt"""
    success: bool = True
    paymentId: str
    txHash: Optional[str] = None
    network: str
    payer: str
    contentId: int
