"""
Recommended end-user messages for BankID order states.

Relying parties are expected to show these texts (the "RFA" messages from
the BankID RP guidelines) rather than raw hint codes.
"""

from __future__ import annotations

MESSAGES = {
    "RFA1": "Start your BankID app.",
    "RFA2": "The BankID app is not installed. Please contact your bank.",
    "RFA3": "Action cancelled. Please try again.",
    "RFA4": "An identification or signing for this personal number is already started. Please try again.",
    "RFA5": "Internal error. Please try again.",
    "RFA6": "Action cancelled.",
    "RFA8": (
        "The BankID app is not responding. Please check that it is started "
        "and that you have internet access. If you don't have a valid BankID "
        "you can get one from your bank. Try again."
    ),
    "RFA9": "Enter your security code in the BankID app and select Identify or Sign.",
    "RFA13": "Trying to start your BankID app.",
    "RFA15": (
        "Searching for BankID, it may take a little while. If a few seconds "
        "have passed and still no BankID has been found, you probably don't "
        "have a BankID which can be used for this identification/signing on "
        "this device."
    ),
    "RFA16": (
        "The BankID you are trying to use is blocked or too old. Please use "
        "another BankID or get a new one from your bank."
    ),
    "RFA17": (
        "Failed to scan the QR code. Start the BankID app and scan the QR "
        "code. Check that the BankID app is up to date."
    ),
    "RFA21": "Identification or signing in progress.",
    "RFA22": "Unknown error. Please try again.",
    "RFA23": "Process your machine-readable travel document using the BankID app.",
}

# hintCode -> RFA for pending orders
PENDING_HINTS = {
    "outstandingTransaction": "RFA13",
    "noClient": "RFA1",
    "started": "RFA15",
    "userMrtd": "RFA23",
    "userSign": "RFA9",
}

# hintCode -> RFA for failed orders
FAILED_HINTS = {
    "expiredTransaction": "RFA8",
    "certificateErr": "RFA16",
    "userCancel": "RFA6",
    "cancelled": "RFA3",
    "startFailed": "RFA17",
}

# errorCode -> RFA for service errors
ERROR_CODES = {
    "alreadyInProgress": "RFA4",
    "requestTimeout": "RFA5",
    "maintenance": "RFA5",
    "internalError": "RFA5",
    "canceled": "RFA3",
}


def message_for_hint(status: str, hint_code: str | None) -> str:
    """Return the user message for a collect status and hint code."""
    if status == "pending":
        return MESSAGES[PENDING_HINTS.get(hint_code or "", "RFA21")]
    if status == "failed":
        return MESSAGES[FAILED_HINTS.get(hint_code or "", "RFA22")]
    return ""


def message_for_error(error_code: str) -> str:
    """Return the user message for a service errorCode."""
    return MESSAGES[ERROR_CODES.get(error_code, "RFA22")]
