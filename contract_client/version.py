"""
Version information for the contract client.

We keep a static __version__ (PEP 440); the user agent sent by the RPC
transport is derived from it.
"""

from __future__ import annotations

# Bump this when publishing
__version__ = "0.1.0"


def user_agent() -> str:
    """Default User-Agent header value, e.g. 'contract-client-py/0.1.0'."""
    return f"contract-client-py/{__version__}"


__all__ = ["__version__", "user_agent"]
