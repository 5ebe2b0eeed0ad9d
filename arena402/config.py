"""
Arena402 Configuration Management
Uses pydantic-settings for type-safe environment variable loading
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Literal
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")


class GatewayConfig(BaseSettings):
    """Configuration for the paywall gateway FastAPI server"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Server Configuration
    gateway_host: str = Field(default="0.0.0.0", description="Host to bind the server to")
    gateway_port: int = Field(default=3000, description="Port to bind the server to")
    environment: Literal["development", "production"] = Field(default="development")
    public_url: str = Field(default="http://localhost:3000", description="Externally visible base URL")

    # Network Configuration
    network: Literal["base-sepolia", "base"] = Field(default="base-sepolia")

    # Payment Configuration
    usdc_contract_address: str = Field(
        default="0x036CbD53842c5426634e7929541eC2318f3dCF7e",
        description="USDC contract address on Base"
    )
    usdc_decimals: int = Field(default=6, ge=0, le=18)
    min_price_usdc: str = Field(default="0.01", description="Lowest price a paywall may charge")

    # x402 Protocol
    payment_timeout_seconds: int = Field(default=300, description="maxTimeoutSeconds advertised in challenges")
    resource_path_prefix: str = Field(default="/v2/blocks")
    enforce_proof_expiry: bool = Field(default=False, description="Reject proofs for expired challenges")
    settlement_lock_enabled: bool = Field(default=False, description="Serialize settlement per block/payer")
    settlement_lock_ttl_seconds: int = Field(default=120)

    # Facilitator (settlement oracle)
    facilitator_url: str = Field(default="https://x402.org/facilitator")
    facilitator_timeout_seconds: float = Field(default=30.0, gt=0)

    # Supabase (empty = in-process store)
    supabase_url: str = Field(default="")
    supabase_key: str = Field(default="")

    # Upstash Redis (empty = in-process locks and challenge log)
    upstash_redis_rest_url: str = Field(default="")
    upstash_redis_rest_token: str = Field(default="")

    # Are.na
    arena_api_url: str = Field(default="https://api.are.na/v2")
    arena_client_id: str = Field(default="")
    arena_client_secret: str = Field(default="")
    arena_redirect_uri: str = Field(default="http://localhost:3000/auth/arena/callback")

    # Sessions
    jwt_secret: str = Field(default="development-secret-change-in-production")
    jwt_algorithm: str = Field(default="HS256")
    session_ttl_days: int = Field(default=7)
    session_cookie_name: str = Field(default="arena402_token")

    # Admin
    admin_api_key: str = Field(default="", description="Empty disables admin routes")

    # CORS Configuration
    cors_origins: list[str] = Field(
        default=["http://localhost:5173"],
        description="Allowed CORS origins"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    log_format: Literal["json", "text"] = Field(default="json")

    # Development
    debug: bool = Field(default=False)
    reload: bool = Field(default=False)

    @field_validator("min_price_usdc")
    @classmethod
    def validate_min_price(cls, v):
        try:
            price = Decimal(v)
        except InvalidOperation:
            raise ValueError(f"min_price_usdc is not a decimal: {v!r}")
        if not price.is_finite() or price <= 0:
            raise ValueError("min_price_usdc must be positive")
        return v

    @field_validator("usdc_contract_address")
    @classmethod
    def validate_contract_address(cls, v):
        if not ADDRESS_PATTERN.match(v):
            raise ValueError(f"Invalid contract address: {v}")
        return v

    @field_validator("resource_path_prefix")
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.rstrip("/") or "/"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def uses_supabase(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    @property
    def uses_redis(self) -> bool:
        return bool(self.upstash_redis_rest_url and self.upstash_redis_rest_token)


class BuyerConfig(BaseSettings):
    """Configuration for the buyer CLI"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Wallet Configuration
    buyer_private_key: str = Field(default="", description="Private key for payments")

    # Gateway Connection
    gateway_url: str = Field(default="http://localhost:3000", description="URL of the paywall gateway")

    # Payment Configuration
    auto_approve_threshold: str = Field(default="0.10", description="Auto-pay blocks priced at or under this")

    # Network Configuration
    network: Literal["base-sepolia", "base"] = Field(default="base-sepolia")
    usdc_contract_address: str = Field(default="0x036CbD53842c5426634e7929541eC2318f3dCF7e")

    @field_validator("buyer_private_key")
    @classmethod
    def validate_private_key(cls, v):
        if v and not v.startswith("0x"):
            return f"0x{v}"
        return v


# Singleton instances
_gateway_config: GatewayConfig | None = None
_buyer_config: BuyerConfig | None = None


def get_gateway_config() -> GatewayConfig:
    """Get or create gateway configuration singleton"""
    global _gateway_config
    if _gateway_config is None:
        _gateway_config = GatewayConfig()
    return _gateway_config


def get_buyer_config() -> BuyerConfig:
    """Get or create buyer configuration singleton"""
    global _buyer_config
    if _buyer_config is None:
        _buyer_config = BuyerConfig()
    return _buyer_config
