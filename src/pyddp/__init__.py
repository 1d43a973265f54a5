"""pyddp - Async Python client engine for DDP data synchronization."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyddp")
except PackageNotFoundError:
    __version__ = "0+local"
from pyddp._emitter import EventEmitter, ListenerHandle, Transport
from pyddp.client import ConnectionState, DdpClient
from pyddp.collection import Collection
from pyddp.config import DdpConfig
from pyddp.exceptions import (
    DdpCodecError,
    DdpConfigError,
    DdpConnectTimeoutError,
    DdpError,
    DdpMethodTimeoutError,
    DdpRemoteMethodError,
    DdpSubscriptionError,
    DdpTimeoutError,
)
from pyddp.models import ChangeEvent, FieldChanges, FilteredChange
from pyddp.plugins import HOOK_ORDER
from pyddp.reactive import ChangeObserver, ReactiveCollection
from pyddp.subscription import Subscription, SubscriptionState

__all__ = [
    "__version__",
    "ChangeEvent",
    "ChangeObserver",
    "Collection",
    "ConnectionState",
    "DdpClient",
    "DdpCodecError",
    "DdpConfig",
    "DdpConfigError",
    "DdpConnectTimeoutError",
    "DdpError",
    "DdpMethodTimeoutError",
    "DdpRemoteMethodError",
    "DdpSubscriptionError",
    "DdpTimeoutError",
    "EventEmitter",
    "FieldChanges",
    "FilteredChange",
    "HOOK_ORDER",
    "ListenerHandle",
    "ReactiveCollection",
    "Subscription",
    "SubscriptionState",
    "Transport",
]
