"""Plugin hooks.

A plugin is any object (or mapping) exposing some of the hook names in
:data:`HOOK_ORDER`. Hooks are plain callables taking the client instance::

    class LoggingPlugin:
        def after_connected(self, client):
            client.on("connected", lambda _m, _t: print("up"))

Each hook may also be spelled in camelCase (``afterConnected``), which is
how plugins shared with other DDP clients name them. When a plugin defines
both spellings, the snake_case one wins.

During client construction the hooks run synchronously, grouped around the
client's own listener registrations, in exactly this order.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

HOOK_ORDER: tuple[str, ...] = (
    "init",
    "before_connected",
    "after_connected",
    "before_subs_restart",
    "after_subs_restart",
    "before_disconnected",
    "after_disconnected",
    "before_added",
    "after_added",
    "before_changed",
    "after_changed",
    "before_removed",
    "after_removed",
    "after",
)


def _camel(place: str) -> str:
    head, *rest = place.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _lookup(plugin: Any, name: str) -> Any:
    if isinstance(plugin, Mapping):
        return plugin.get(name)
    return getattr(plugin, name, None)


def _hook(plugin: Any, place: str) -> Any:
    hook = _lookup(plugin, place)
    if hook is None:
        hook = _lookup(plugin, _camel(place))
    return hook


def connect_plugins(plugins: Iterable[Any] | None, instance: Any, *places: str) -> None:
    """Run the named hooks of every plugin, plugin by plugin, place by place."""
    if not plugins:
        return
    for place in places:
        if place not in HOOK_ORDER:
            raise ValueError(f"Unknown plugin hook {place!r}")
    for plugin in plugins:
        for place in places:
            hook = _hook(plugin, place)
            if hook is not None:
                hook(instance)
