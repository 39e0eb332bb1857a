"""
List virtualization and the Qt-driven list session.
"""

from .list_session import EventListSession
from .virtual_window import DEFAULT_OVERSCAN, DEFAULT_ROW_HEIGHT, VirtualWindow, visible_slice

__all__ = [
    'EventListSession',
    'VirtualWindow',
    'visible_slice',
    'DEFAULT_ROW_HEIGHT',
    'DEFAULT_OVERSCAN',
]
