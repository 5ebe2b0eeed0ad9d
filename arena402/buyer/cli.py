"""
Arena402 Buyer CLI
Command-line client for reading paywalled Are.na blocks and paying for them over x402
"""

import asyncio
import json
import sys
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx
import structlog
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from arena402.buyer.signer import PaymentSigner
from arena402.config import BuyerConfig, get_buyer_config
from arena402.log import configure_logging
from arena402.payments.codec import decode_payment_required, decode_settlement_receipt, encode_header
from arena402.payments.models import PaymentRequired, SettlementReceipt
from arena402.paywall.challenge import from_minor_units

logger = structlog.get_logger()
console = Console()


class BuyerCLI:
    """
    Buyer CLI for:
    1. Inspecting paywall prices
    2. Fetching blocks through the gateway
    3. Signing and submitting x402 payments when a block is paywalled
    """

    def __init__(self, config: Optional[BuyerConfig] = None, client: Optional[httpx.AsyncClient] = None):
        self.config = config or get_buyer_config()
        self.client = client or httpx.AsyncClient(timeout=60.0)
        self.signer = PaymentSigner(self.config.buyer_private_key) if self.config.buyer_private_key else None

    @property
    def wallet(self) -> Optional[str]:
        return self.signer.address if self.signer else None

    def _headers(self) -> Dict[str, str]:
        return {"X-Wallet-Address": self.wallet} if self.wallet else {}

    async def get_paywall(self, block_id: int) -> Optional[Dict[str, Any]]:
        """Public paywall info for a block, None when the block is free"""
        response = await self.client.get(f"{self.config.gateway_url}/paywall/{block_id}")
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()

    def display_paywall(self, block_id: int, paywall: Optional[Dict[str, Any]]):
        if paywall is None:
            console.print(f"[green]Block {block_id} is free[/green]")
            return

        table = Table(title=f"Paywall for block {block_id}", show_header=True, header_style="bold magenta")
        table.add_column("Price", justify="right", style="yellow")
        table.add_column("Network", style="cyan")
        table.add_column("Recipient", style="white")
        table.add_column("Owner", style="green")
        table.add_column("Active", style="blue")
        table.add_row(
            f"{paywall['priceUsdc']} USDC",
            paywall.get("network", ""),
            paywall["recipientWallet"],
            paywall.get("ownerUsername") or "-",
            "yes" if paywall["active"] else "no",
        )
        console.print(table)

    def should_pay(self, payment_required: PaymentRequired, auto_pay: bool) -> bool:
        """Pay automatically at or under the approval threshold, otherwise ask"""
        price = Decimal(from_minor_units(payment_required.accepts[0].amount))
        if auto_pay or price <= Decimal(self.config.auto_approve_threshold):
            return True
        answer = console.input(f"Pay [yellow]{price} USDC[/yellow] for this block? [y/N] ").strip().lower()
        return answer in ("y", "yes")

    async def fetch_block(self, block_id: int, auto_pay: bool = False) -> Optional[Dict[str, Any]]:
        """
        Fetch a block, paying for it if the gateway answers 402

        Returns:
            Block JSON, or None if payment was declined or failed
        """
        url = f"{self.config.gateway_url}/v2/blocks/{block_id}"
        response = await self.client.get(url, headers=self._headers())

        if response.status_code != 402:
            response.raise_for_status()
            return response.json()

        header = response.headers.get("X-Payment")
        if not header:
            console.print("[red]Gateway answered 402 without an X-Payment challenge[/red]")
            return None

        payment_required = decode_payment_required(header)
        requirements = payment_required.accepts[0]
        console.print(
            Panel(
                f"Price: [yellow]{from_minor_units(requirements.amount)} USDC[/yellow]\n"
                f"Pay to: {requirements.payTo}\n"
                f"Network: {requirements.network}",
                title=f"Payment required for block {block_id}",
            )
        )

        if self.signer is None:
            console.print("[red]Set BUYER_PRIVATE_KEY to pay for blocks[/red]")
            return None
        if not self.should_pay(payment_required, auto_pay):
            console.print("[yellow]Payment declined[/yellow]")
            return None

        payload = self.signer.sign(payment_required)
        paid = await self.client.get(
            url,
            headers={**self._headers(), "X-Payment": encode_header(payload)},
        )

        if paid.status_code >= 400:
            error = paid.json()
            logger.error("block_payment_failed", block_id=block_id, status_code=paid.status_code, error=error.get("error"))
            console.print(f"[red]Payment failed ({paid.status_code}): {error.get('message')}[/red]")
            return None

        receipt_header = paid.headers.get("X-Payment-Receipt")
        if receipt_header:
            self.display_receipt(decode_settlement_receipt(receipt_header))
        return paid.json()

    def display_receipt(self, receipt: SettlementReceipt):
        console.print(
            Panel(
                f"Payment: {receipt.paymentId}\n"
                f"Transaction: {receipt.txHash or '-'}\n"
                f"Network: {receipt.network}\n"
                f"Payer: {receipt.payer}",
                title="[green]Payment settled[/green]",
            )
        )

    def display_block(self, block: Dict[str, Any]):
        title = block.get("title") or block.get("generated_title") or f"Block {block.get('id')}"
        body = block.get("content") or (block.get("source") or {}).get("url") or json.dumps(block, indent=2)[:2000]
        console.print(Panel(body, title=f"[bold cyan]{title}[/bold cyan]"))

    async def close(self):
        """Close the HTTP client"""
        await self.client.aclose()


async def main():
    """Main entry point for buyer CLI"""
    configure_logging("INFO", "text")

    cli = BuyerCLI()
    args = sys.argv[1:]

    try:
        if len(args) >= 2 and args[0] == "paywall":
            block_id = int(args[1])
            cli.display_paywall(block_id, await cli.get_paywall(block_id))

        elif len(args) >= 2 and args[0] == "fetch":
            block = await cli.fetch_block(int(args[1]), auto_pay="--yes" in args)
            if block is not None:
                cli.display_block(block)

        else:
            console.print("[red]Invalid command[/red]")
            console.print("Usage: arena402-buyer [paywall <block_id> | fetch <block_id> [--yes]]")

    except httpx.HTTPError as e:
        console.print(f"[red]Gateway request failed: {e}[/red]")
    finally:
        await cli.close()


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
