"""Core configuration, constants and exceptions."""

from .config import ConfigStore, HostConfig, Settings, get_settings, settings
from .exceptions import (
    ConfigPersistError,
    HostUnavailableError,
    InputError,
    InvocationError,
    InvocationFailureError,
    InvocationTimeoutError,
    ProsefixException,
    StreamFault,
)

__all__ = [
    "ConfigPersistError",
    "ConfigStore",
    "HostConfig",
    "HostUnavailableError",
    "InputError",
    "InvocationError",
    "InvocationFailureError",
    "InvocationTimeoutError",
    "ProsefixException",
    "Settings",
    "StreamFault",
    "get_settings",
    "settings",
]
