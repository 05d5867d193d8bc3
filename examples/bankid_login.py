"""
BankID login from the terminal.

Starts an identification order against the BankID test environment,
prints the auto start link, and follows the order until it finishes.

    export BANKID_CERTIFICATE=/path/to/FPTestcert.p12
    export BANKID_CERTIFICATE_PASSWORD=qwerty123
    export BANKID_CA_DIR=/path/to/ca-roots
    python examples/bankid_login.py 198710105080

Requires: rich>=13.0
"""

from __future__ import annotations

import asyncio
import sys

from rich.console import Console
from rich.theme import Theme

from bankid_mcp.api.client import BankIDClient
from bankid_mcp.api.models import AuthRequest
from bankid_mcp.api.order import Order, OrderStatus
from bankid_mcp.config import Settings
from bankid_mcp.errors import BankIDError
from bankid_mcp.utils.messages import message_for_hint

THEME = Theme(
    {
        "bankid.ok": "bold green",
        "bankid.error": "bold red",
        "bankid.dim": "dim",
    }
)

console = Console(theme=THEME)


async def login(personal_number: str | None) -> int:
    async with BankIDClient(Settings.from_env()) as client:
        response = await client.auth(
            AuthRequest(endUserIp="127.0.0.1", personalNumber=personal_number)
        )
        console.print(
            f"  [bankid.dim]bankid:///?autostarttoken={response.autoStartToken}&redirect=null[/]"
        )
        order = Order.from_response(response)
        last_hint = None
        try:
            while not order.is_terminal:
                order = await client.collect(order)
                if order.hint_code != last_hint:
                    console.print(f"  {message_for_hint(order.status.value, order.hint_code)}")
                    last_hint = order.hint_code
                if not order.is_terminal:
                    await asyncio.sleep(2)
        except (KeyboardInterrupt, asyncio.CancelledError):
            await client.cancel(order)
            console.print("\n[bankid.dim]Cancelled.[/]")
            return 1

    if order.status is OrderStatus.COMPLETE:
        user = order.completion_data.user
        console.print(f"\n  [bankid.ok]✓ Identified {user.name} ({user.personalNumber})[/]")
        return 0
    console.print(f"\n  [bankid.error]✗ Failed: {order.hint_code}[/]")
    return 1


def main():
    personal_number = sys.argv[1] if len(sys.argv) > 1 else None
    try:
        sys.exit(asyncio.run(login(personal_number)))
    except BankIDError as e:
        console.print(f"\n[bankid.error]BankID error: {e}[/]")
        sys.exit(2)


if __name__ == "__main__":
    main()
