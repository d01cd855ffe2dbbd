"""
contract_client.types
=====================

Client datatypes.

This package exposes three submodules:

- :mod:`contract_client.types.core`: chain records (TransactionReceipt, LogEntry)
- :mod:`contract_client.types.params`: parameter declarations (ParamSpec)
- :mod:`contract_client.types.registry`: parameter type registry

Either import the modules:

    from contract_client.types import registry
    registry.DEFAULT_REGISTRY.encode("date", when)

or import concrete names directly:

    from contract_client.types import ParamSpec, TypeRegistry

Attributes are resolved on first access.
"""

from __future__ import annotations

import importlib
from types import ModuleType
from typing import Dict, List

__all__ = ["core", "params", "registry"]

# Map of friendly name -> absolute module path
_SUBMODULES: Dict[str, str] = {
    "core": "contract_client.types.core",
    "params": "contract_client.types.params",
    "registry": "contract_client.types.registry",
}

_FORWARD_CANDIDATES = (
    # core
    "LogEntry",
    "TransactionReceipt",
    # params
    "ParamSpec",
    "NO_DEFAULT",
    # registry
    "ParamType",
    "TypeRegistry",
    "DEFAULT_REGISTRY",
)


def _load_submodule(name: str) -> ModuleType:
    path = _SUBMODULES.get(name)
    if not path:
        raise AttributeError(f"module 'contract_client.types' has no attribute '{name}'")
    return importlib.import_module(path)


def __getattr__(name: str):
    if name in _SUBMODULES:
        return _load_submodule(name)
    for sm_name in _SUBMODULES:
        mod = _load_submodule(sm_name)
        if hasattr(mod, name):
            return getattr(mod, name)
    raise AttributeError(f"module 'contract_client.types' has no attribute '{name}'")


def __dir__() -> List[str]:
    base: List[str] = list(__all__)
    for sm in _SUBMODULES:
        mod = _load_submodule(sm)
        base.extend(n for n in _FORWARD_CANDIDATES if hasattr(mod, n) and n not in base)
    return sorted(base)
