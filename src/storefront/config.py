"""Runtime configuration, read from the environment."""

import os
from dataclasses import dataclass

DEFAULT_API_BASE = "https://api.cyoda.net"


@dataclass(frozen=True)
class Settings:
    env: str = "development"
    log_dir: str | None = None
    store_backend: str = "memory"  # "memory" or "http"
    api_base: str = DEFAULT_API_BASE
    api_token: str | None = None
    api_timeout: float = 10.0
    state_dir: str = ".storefront"

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        environ = os.environ if environ is None else environ
        backend = environ.get("STOREFRONT_STORE", "memory").lower()
        if backend not in ("memory", "http"):
            raise ValueError(f"Unknown STOREFRONT_STORE backend: {backend!r}")

        return cls(
            env=environ.get("STOREFRONT_ENV", "development").lower(),
            log_dir=environ.get("STOREFRONT_LOG_DIR") or None,
            store_backend=backend,
            api_base=environ.get("STOREFRONT_API_BASE", DEFAULT_API_BASE),
            api_token=environ.get("STOREFRONT_API_TOKEN") or None,
            api_timeout=float(environ.get("STOREFRONT_API_TIMEOUT", "10")),
            state_dir=environ.get("STOREFRONT_STATE_DIR", ".storefront"),
        )
