"""Core module - configuration, errors, security, and dependencies"""

from .config import ProtocolParams, Settings, get_settings
from .errors import ErrorCode, ProtocolError

__all__ = [
    "ErrorCode",
    "ProtocolError",
    "ProtocolParams",
    "Settings",
    "get_settings",
]
