"""Runtime configuration for storefront.

All settings come from environment variables so the API server, the CLI and
tests can point at different data directories and gateway keys.
"""

import os
from dataclasses import dataclass
from pathlib import Path

# Local data directory within the storefront project
# Can be overridden via STOREFRONT_DATA_DIR environment variable
_default_data_dir = Path(__file__).parent.parent.parent / "data"

DEFAULT_CURRENCY = "usd"
DEFAULT_GATEWAY_TIMEOUT = 10.0
DEFAULT_PUBLIC_URL = "http://localhost:3000"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    stripe_secret_key: str | None
    currency: str = DEFAULT_CURRENCY
    gateway_timeout: float = DEFAULT_GATEWAY_TIMEOUT
    public_url: str = DEFAULT_PUBLIC_URL
    log_level: str = "INFO"
    enforce_stock: bool = False

    @property
    def success_url(self) -> str:
        return f"{self.public_url.rstrip('/')}/checkout/success"

    @property
    def cancel_url(self) -> str:
        return f"{self.public_url.rstrip('/')}/checkout/cancel"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the current process environment."""
        timeout = os.environ.get("STOREFRONT_GATEWAY_TIMEOUT")
        log_level = os.environ.get("STOREFRONT_LOG_LEVEL", "INFO").upper()
        if log_level not in LOG_LEVELS:
            log_level = "INFO"
        return cls(
            data_dir=Path(os.environ.get("STOREFRONT_DATA_DIR", _default_data_dir)),
            stripe_secret_key=os.environ.get("STRIPE_SECRET_KEY") or None,
            currency=os.environ.get("STOREFRONT_CURRENCY", DEFAULT_CURRENCY).lower(),
            gateway_timeout=float(timeout) if timeout else DEFAULT_GATEWAY_TIMEOUT,
            public_url=os.environ.get("STOREFRONT_PUBLIC_URL", DEFAULT_PUBLIC_URL),
            log_level=log_level,
            enforce_stock=os.environ.get("STOREFRONT_ENFORCE_STOCK", "").lower() in ("1", "true", "yes"),
        )
