"""
Client configuration: RPC endpoint, retry/timeouts and polling cadence.

- Loads sane defaults and supports overrides via environment variables
  (CONTRACT_CLIENT_*).
- Validates endpoint schemes so a typo fails at startup, not on first call.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .version import user_agent

_DEFAULT_RPC = "http://127.0.0.1:8545"

ENV_PREFIX = "CONTRACT_CLIENT_"


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name)
    return v if v is not None else default


def _ensure_scheme(url: Optional[str], allowed: tuple[str, ...]) -> Optional[str]:
    if not url:
        return url
    lower = url.lower()
    if not any(lower.startswith(f"{sch}://") for sch in allowed):
        raise ValueError(f"URL must start with {allowed}, got: {url!r}")
    return url


@dataclass(slots=True)
class ClientConfig:
    # Transport
    rpc_url: str = field(default_factory=lambda: _DEFAULT_RPC)
    request_timeout: float = 10.0
    max_retries: int = 3
    backoff_factor: float = 1.8
    # Confirmation wait (Sender)
    receipt_timeout: float = 120.0
    receipt_poll_interval: float = 0.5
    # Event streams
    event_poll_interval: float = 2.0
    # Headers / identity
    user_agent: str = field(default_factory=user_agent)

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX) -> "ClientConfig":
        """
        Create config from environment variables:

        CONTRACT_CLIENT_RPC_URL                (http/https)
        CONTRACT_CLIENT_TIMEOUT                (float seconds, per request)
        CONTRACT_CLIENT_MAX_RETRIES            (int)
        CONTRACT_CLIENT_BACKOFF                (float)
        CONTRACT_CLIENT_RECEIPT_TIMEOUT        (float seconds)
        CONTRACT_CLIENT_RECEIPT_POLL_INTERVAL  (float seconds)
        CONTRACT_CLIENT_EVENT_POLL_INTERVAL    (float seconds)
        CONTRACT_CLIENT_USER_AGENT             (str)
        """
        rpc = _env(f"{prefix}RPC_URL", _DEFAULT_RPC)
        _ensure_scheme(rpc, ("http", "https"))
        return cls(
            rpc_url=rpc or _DEFAULT_RPC,
            request_timeout=float(_env(f"{prefix}TIMEOUT", "10.0")),
            max_retries=int(_env(f"{prefix}MAX_RETRIES", "3")),
            backoff_factor=float(_env(f"{prefix}BACKOFF", "1.8")),
            receipt_timeout=float(_env(f"{prefix}RECEIPT_TIMEOUT", "120.0")),
            receipt_poll_interval=float(_env(f"{prefix}RECEIPT_POLL_INTERVAL", "0.5")),
            event_poll_interval=float(_env(f"{prefix}EVENT_POLL_INTERVAL", "2.0")),
            user_agent=_env(f"{prefix}USER_AGENT", None) or user_agent(),
        )

    @classmethod
    def with_overrides(
        cls, base: Optional["ClientConfig"] = None, **overrides: Any
    ) -> "ClientConfig":
        """
        Build from an existing config plus keyword overrides.
        Unknown keys are ignored.
        """
        base = base or cls.from_env()
        data = base.to_dict()
        data.update({k: v for k, v in overrides.items() if k in data})
        if "rpc_url" in overrides:
            _ensure_scheme(data["rpc_url"], ("http", "https"))
        return cls(**data)

    def http_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": self.user_agent,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rpc_url": self.rpc_url,
            "request_timeout": float(self.request_timeout),
            "max_retries": int(self.max_retries),
            "backoff_factor": float(self.backoff_factor),
            "receipt_timeout": float(self.receipt_timeout),
            "receipt_poll_interval": float(self.receipt_poll_interval),
            "event_poll_interval": float(self.event_poll_interval),
            "user_agent": self.user_agent,
        }


__all__ = ["ClientConfig", "ENV_PREFIX"]
