"""
Settlement oracle client for the x402 facilitator HTTP API
Verifies signed payment payloads and settles them on-chain via POST /verify and /settle
"""

from typing import Optional, Protocol

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from arena402.errors import OracleUnavailable
from arena402.payments.models import (
    X402_VERSION,
    PaymentPayload,
    PaymentRequirements,
    SettleResponse,
    VerifyResponse,
)

logger = structlog.get_logger()


class SettlementOracle(Protocol):
    """What the settlement coordinator needs from a facilitator"""

    async def verify(self, payload: PaymentPayload, requirements: PaymentRequirements) -> VerifyResponse:
        ...

    async def settle(self, payload: PaymentPayload, requirements: PaymentRequirements) -> SettleResponse:
        ...


class FacilitatorClient:
    """
    HTTP client for an x402 facilitator

    One instance is built at process startup and shared by all requests.
    Transport failures and unparseable answers raise OracleUnavailable;
    a well-formed negative answer is returned as-is.
    """

    def __init__(
        self,
        facilitator_url: str,
        timeout_seconds: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.facilitator_url = facilitator_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def verify(self, payload: PaymentPayload, requirements: PaymentRequirements) -> VerifyResponse:
        """Ask the facilitator whether the payload is a valid payment for the requirements"""
        return await self._post("verify", payload, requirements, VerifyResponse)

    async def settle(self, payload: PaymentPayload, requirements: PaymentRequirements) -> SettleResponse:
        """Ask the facilitator to execute the transfer on-chain"""
        return await self._post("settle", payload, requirements, SettleResponse)

    async def _post(self, step: str, payload: PaymentPayload, requirements: PaymentRequirements, response_model):
        endpoint = f"{self.facilitator_url}/{step}"
        body = {
            "x402Version": X402_VERSION,
            "paymentPayload": payload.model_dump(mode="json", by_alias=True, exclude_none=True),
            "paymentRequirements": requirements.model_dump(mode="json", by_alias=True, exclude_none=True),
        }

        logger.info(f"facilitator_{step}_request", endpoint=endpoint, pay_to=requirements.payTo)

        try:
            response = await self.client.post(endpoint, json=body, timeout=self.timeout_seconds)
        except httpx.TimeoutException as e:
            logger.error(f"facilitator_{step}_timeout", endpoint=endpoint, timeout=self.timeout_seconds)
            raise OracleUnavailable(
                f"Facilitator {step} timed out after {self.timeout_seconds}s", step=step
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"facilitator_{step}_failed", endpoint=endpoint, error=str(e))
            raise OracleUnavailable(f"Failed to contact facilitator at {endpoint}: {e}", step=step) from e

        try:
            result: BaseModel = response_model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.error(
                f"facilitator_{step}_bad_response",
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise OracleUnavailable(
                f"Facilitator {step} returned an unreadable response (HTTP {response.status_code})",
                step=step,
                status_code=response.status_code,
            ) from e

        logger.info(f"facilitator_{step}_response", status_code=response.status_code, result=result.model_dump())
        return result

    async def aclose(self) -> None:
        await self.client.aclose()
