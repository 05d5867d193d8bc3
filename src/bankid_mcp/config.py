"""
Client configuration.

Settings can be built directly or read from BANKID_* environment variables:

    BANKID_ENVIRONMENT           "test" (default) or "production"
    BANKID_CERTIFICATE           path to the RP certificate (.p12 or .pem)
    BANKID_CERTIFICATE_PASSWORD  passphrase for the certificate
    BANKID_CA_DIR                directory holding the provisioned CA roots
    BANKID_REQUEST_TIMEOUT       per-request deadline in seconds
    BANKID_RETRY_MAX_ATTEMPTS    collect/cancel attempts on transport errors
    BANKID_RETRY_BASE_DELAY      first backoff delay in seconds
    BANKID_RETRY_MAX_DELAY       backoff ceiling in seconds
    BANKID_MAX_USER_VISIBLE_DATA       encoded userVisibleData limit
    BANKID_MAX_USER_NON_VISIBLE_DATA   encoded userNonVisibleData limit
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field

from bankid_mcp.api.transport import Endpoint
from bankid_mcp.errors import ValidationError
from bankid_mcp.utils.validation import MAX_USER_NON_VISIBLE_DATA, MAX_USER_VISIBLE_DATA

DEFAULT_CA_DIR = Path(__file__).parent / "certs"


class RetryPolicy(BaseModel, frozen=True):
    """Backoff for operations that are safe to repeat."""

    max_attempts: int = Field(default=3, ge=1)
    base_delay: float = Field(default=0.5, ge=0)
    max_delay: float = Field(default=4.0, ge=0)

    def delay(self, attempt: int) -> float:
        """Un-jittered delay before retry number ``attempt`` (1-based)."""
        return min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))


class Settings(BaseModel, frozen=True):
    """Configuration for a BankIDClient; immutable once built."""

    endpoint: Endpoint = Endpoint.TEST
    request_timeout: float = Field(default=10.0, gt=0)
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)
    certificate_path: Path | None = None
    certificate_password: str | None = Field(default=None, repr=False)
    ca_dir: Path = DEFAULT_CA_DIR
    max_user_visible_data: int = MAX_USER_VISIBLE_DATA
    max_user_non_visible_data: int = MAX_USER_NON_VISIBLE_DATA

    @property
    def ca_path(self) -> Path:
        """Trust anchor for the configured endpoint."""
        return self.ca_dir / self.endpoint.ca_filename

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        defaults = RetryPolicy()
        certificate = env.get("BANKID_CERTIFICATE")
        environment = env.get("BANKID_ENVIRONMENT", "test")
        try:
            endpoint = Endpoint(environment.lower())
        except ValueError as e:
            raise ValidationError(
                f'BANKID_ENVIRONMENT must be "test" or "production", got {environment!r}'
            ) from e
        return cls(
            endpoint=endpoint,
            request_timeout=float(env.get("BANKID_REQUEST_TIMEOUT", 10.0)),
            retry_policy=RetryPolicy(
                max_attempts=int(env.get("BANKID_RETRY_MAX_ATTEMPTS", defaults.max_attempts)),
                base_delay=float(env.get("BANKID_RETRY_BASE_DELAY", defaults.base_delay)),
                max_delay=float(env.get("BANKID_RETRY_MAX_DELAY", defaults.max_delay)),
            ),
            certificate_path=Path(certificate) if certificate else None,
            certificate_password=env.get("BANKID_CERTIFICATE_PASSWORD"),
            ca_dir=Path(env.get("BANKID_CA_DIR", DEFAULT_CA_DIR)),
            max_user_visible_data=int(
                env.get("BANKID_MAX_USER_VISIBLE_DATA", MAX_USER_VISIBLE_DATA)
            ),
            max_user_non_visible_data=int(
                env.get("BANKID_MAX_USER_NON_VISIBLE_DATA", MAX_USER_NON_VISIBLE_DATA)
            ),
        )
