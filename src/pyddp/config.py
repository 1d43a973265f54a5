"""Client configuration for pyddp."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any

from pyddp.exceptions import DdpConfigError

if TYPE_CHECKING:
    from pyddp._emitter import Transport


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class DdpConfig:
    """Client configuration.

    Parameters
    ----------
    endpoint : str
        Server address, e.g. ``"wss://example.com/websocket"``.
    transport_factory : callable
        Called once with this config; must return an object implementing
        :class:`pyddp._emitter.Transport`.
    auto_connect : bool
        Ask the transport to connect as soon as the client is constructed.
    auto_reconnect : bool
        Let the transport reconnect after an unsolicited disconnection.
        A call to :meth:`DdpClient.disconnect` always turns this off until
        the next :meth:`DdpClient.connect`.
    reconnect_interval : float
        Seconds between reconnection attempts. Passed through to the
        transport.
    clear_data_on_reconnection : bool
        Remove every mirrored document (emitting ``removed`` notifications)
        after each reconnection, before subscriptions are restarted.
    max_timeout : float or None
        Maximum seconds to wait for ``connect()`` or a method result.
        ``None`` waits indefinitely.
    clean_queue : bool
        Drop queued outgoing messages on disconnection. Passed through to
        the transport.
    ddp_version : str
        Protocol version string sent by the transport on connect.
    plugins : sequence
        Plugin bundles, see :mod:`pyddp.plugins`.
    """

    endpoint: str
    transport_factory: Callable[[DdpConfig], Transport]
    auto_connect: bool = True
    auto_reconnect: bool = True
    reconnect_interval: float = 1.0
    clear_data_on_reconnection: bool = True
    max_timeout: float | None = None
    clean_queue: bool = False
    ddp_version: str = "1"
    plugins: Sequence[Any] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.endpoint, str) or not self.endpoint.strip():
            raise DdpConfigError("endpoint must be a non-empty string")
        if not callable(self.transport_factory):
            raise DdpConfigError("transport_factory must be callable")
        if self.max_timeout is not None and self.max_timeout <= 0:
            raise DdpConfigError("max_timeout must be positive or None")

    @classmethod
    def from_env(cls, **overrides: Any) -> DdpConfig:
        """Create configuration from environment variables.

        Reads ``DDP_ENDPOINT`` and the optional ``DDP_*`` variables listed
        below. Explicit keyword arguments override environment values;
        ``transport_factory`` can only be given as an override.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        DdpConfig
            Populated configuration.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        endpoint = env.get("DDP_ENDPOINT")
        if endpoint is not None:
            config_kwargs["endpoint"] = endpoint

        version = env.get("DDP_VERSION")
        if version is not None:
            config_kwargs["ddp_version"] = version

        _ENV_BOOL_MAP = {
            "DDP_AUTO_CONNECT": ("auto_connect", True),
            "DDP_AUTO_RECONNECT": ("auto_reconnect", True),
            "DDP_CLEAR_DATA_ON_RECONNECTION": ("clear_data_on_reconnection", True),
            "DDP_CLEAN_QUEUE": ("clean_queue", False),
        }
        for env_key, (field_name, default) in _ENV_BOOL_MAP.items():
            if field_name not in overrides:
                config_kwargs[field_name] = _env_bool(env.get(env_key), default)

        interval_env = env.get("DDP_RECONNECT_INTERVAL")
        if interval_env is not None and "reconnect_interval" not in overrides:
            config_kwargs["reconnect_interval"] = float(interval_env)

        timeout_env = env.get("DDP_MAX_TIMEOUT")
        if timeout_env is not None and "max_timeout" not in overrides:
            config_kwargs["max_timeout"] = float(timeout_env)

        config_kwargs.update(overrides)

        if "endpoint" not in config_kwargs:
            raise DdpConfigError("DDP_ENDPOINT is not set and no endpoint override was given")
        if "transport_factory" not in config_kwargs:
            raise DdpConfigError("transport_factory must be passed explicitly")

        return cls(**config_kwargs)
