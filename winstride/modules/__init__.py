"""
Event source modules.

Each module bundles the column set, filter dimensions, default filters,
extra search fields and export mapper of one Windows event log.
"""

from typing import List

from .base import ModuleDefinition
from . import powershell, security, sysmon

_REGISTRY = {
    security.MODULE.name: security.MODULE,
    powershell.MODULE.name: powershell.MODULE,
    sysmon.MODULE.name: sysmon.MODULE,
}


def get_module(name: str) -> ModuleDefinition:
    """
    Look up a module by name.

    Raises:
        KeyError: If no module is registered under ``name``
    """
    try:
        return _REGISTRY[name.lower()]
    except KeyError:
        raise KeyError(f"Unknown module '{name}'. Available: {', '.join(_REGISTRY)}") from None


def available_modules() -> List[str]:
    return list(_REGISTRY)


__all__ = ['ModuleDefinition', 'get_module', 'available_modules']
