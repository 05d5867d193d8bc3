"""
BankID MCP Server - Swedish e-identification for AI Agents.

An MCP (Model Context Protocol) server that lets AI agents start BankID
authentication and signing orders, follow them until the end user has
approved in the BankID app, and cancel them.

Configuration is read from BANKID_* environment variables
(see bankid_mcp.config).

Usage:
    # With MCP Inspector (development)
    mcp dev src/bankid_mcp/server.py

    # With Claude Desktop
    {
        "mcpServers": {
            "bankid": {
                "command": "python",
                "args": ["-m", "bankid_mcp.server"],
                "env": {"BANKID_CERTIFICATE": "/path/to/rp.p12"}
            }
        }
    }
"""

from __future__ import annotations

import json
import logging
import os
import sys

from mcp.server.fastmcp import FastMCP

from bankid_mcp.api.client import BankIDClient
from bankid_mcp.api.models import AuthRequest, SignRequest
from bankid_mcp.api.order import Order
from bankid_mcp.config import Settings
from bankid_mcp.errors import BankIDError, ServiceError
from bankid_mcp.utils.messages import message_for_error, message_for_hint
from bankid_mcp.utils.validation import validate_personal_number as check_personal_number

log = logging.getLogger(__name__)

mcp = FastMCP(
    "bankid-mcp",
    instructions=(
        "BankID MCP server for Sweden. Start identification and signing "
        "orders, poll them with collect_order every two seconds until the "
        "status is complete or failed, and cancel orders that are abandoned."
    ),
)

_client: BankIDClient | None = None


def get_client() -> BankIDClient:
    """Return the shared client, building it from the environment once."""
    global _client
    if _client is None:
        _client = BankIDClient(Settings.from_env())
    return _client


def _error(exc: BankIDError) -> str:
    result = {"error": type(exc).__name__, "details": str(exc)}
    if isinstance(exc, ServiceError):
        result["error_code"] = exc.code
        result["user_message"] = message_for_error(exc.code)
    return json.dumps(result)


def _order_json(order: Order) -> str:
    result = {
        "order_ref": order.order_ref,
        "status": order.status.value,
        "hint_code": order.hint_code,
        "user_message": message_for_hint(order.status.value, order.hint_code),
    }
    if order.completion_data is not None:
        user = order.completion_data.user
        result["user"] = {
            "personal_number": user.personalNumber,
            "name": user.name,
            "given_name": user.givenName,
            "surname": user.surname,
        }
        result["signature"] = order.completion_data.signature
        result["ocsp_response"] = order.completion_data.ocspResponse
    return json.dumps(result, indent=2, ensure_ascii=False)


# ═══════════════════════════════════════════════════
# TOOL 1: Start Authentication
# ═══════════════════════════════════════════════════

@mcp.tool()
async def start_authentication(
    end_user_ip: str,
    personal_number: str | None = None,
) -> str:
    """Start a BankID identification order.

    The end user approves the order in their BankID app. Without a
    personal number, the user is identified by whoever opens the app
    (via the auto start token or QR code).

    Args:
        end_user_ip: IP address of the end user's device
        personal_number: Optional 12-digit personal number (YYYYMMDDNNNN)

    Returns:
        JSON with order_ref, auto_start_token, qr_start_token and qr_start_secret
    """
    try:
        response = await get_client().auth(
            AuthRequest(endUserIp=end_user_ip, personalNumber=personal_number)
        )
    except BankIDError as e:
        return _error(e)
    return json.dumps(
        {
            "order_ref": response.orderRef,
            "auto_start_token": response.autoStartToken,
            "qr_start_token": response.qrStartToken,
            "qr_start_secret": response.qrStartSecret,
        },
        indent=2,
    )


# ═══════════════════════════════════════════════════
# TOOL 2: Start Signing
# ═══════════════════════════════════════════════════

@mcp.tool()
async def start_signing(
    end_user_ip: str,
    text: str,
    personal_number: str | None = None,
    markdown: bool = False,
) -> str:
    """Start a BankID signing order.

    Args:
        end_user_ip: IP address of the end user's device
        text: Text shown to the user in the app, e.g. "I approve the agreement"
        personal_number: Optional 12-digit personal number (YYYYMMDDNNNN)
        markdown: Render text as simpleMarkdownV1

    Returns:
        JSON with order_ref and start tokens
    """
    try:
        response = await get_client().sign(
            SignRequest.from_text(
                end_user_ip,
                text,
                personal_number=personal_number,
                markdown=markdown,
                max_length=get_client().settings.max_user_visible_data,
            )
        )
    except BankIDError as e:
        return _error(e)
    return json.dumps(
        {
            "order_ref": response.orderRef,
            "auto_start_token": response.autoStartToken,
            "qr_start_token": response.qrStartToken,
            "qr_start_secret": response.qrStartSecret,
        },
        indent=2,
    )


# ═══════════════════════════════════════════════════
# TOOL 3: Collect
# ═══════════════════════════════════════════════════

@mcp.tool()
async def collect_order(order_ref: str) -> str:
    """Get the current status of a BankID order.

    Call every two seconds while status is "pending". "complete" and
    "failed" are final.

    Args:
        order_ref: Order reference from start_authentication or start_signing

    Returns:
        JSON with status, hint_code, a user_message to show, and the
        identified user once complete
    """
    try:
        order = await get_client().collect(order_ref)
    except BankIDError as e:
        return _error(e)
    return _order_json(order)


# ═══════════════════════════════════════════════════
# TOOL 4: Cancel
# ═══════════════════════════════════════════════════

@mcp.tool()
async def cancel_order(order_ref: str) -> str:
    """Cancel an outstanding BankID order. Safe to call more than once.

    Args:
        order_ref: Order reference to cancel

    Returns:
        JSON with cancelled: true, or an error
    """
    try:
        await get_client().cancel(order_ref)
    except BankIDError as e:
        return _error(e)
    return json.dumps({"order_ref": order_ref, "cancelled": True})


# ═══════════════════════════════════════════════════
# TOOL 5: Personal Number Validation
# ═══════════════════════════════════════════════════

@mcp.tool()
async def validate_personal_number(personal_number: str) -> str:
    """Check the format of a Swedish personal identity number.

    Args:
        personal_number: 12-digit personal number (YYYYMMDDNNNN)

    Returns:
        JSON with is_valid and a list of errors
    """
    errors = check_personal_number(personal_number)
    return json.dumps({"is_valid": not errors, "errors": errors})


def configure_logging(level: str = "INFO") -> None:
    """Log to stderr; stdout carries the MCP stdio protocol."""
    logging.basicConfig(
        level=level.upper(),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main():
    """Entry point for the BankID MCP server."""
    configure_logging(os.environ.get("BANKID_LOG_LEVEL", "INFO"))
    mcp.run()


if __name__ == "__main__":
    main()
