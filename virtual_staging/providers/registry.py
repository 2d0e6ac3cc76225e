from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict
from virtual_staging.core.errors import UnknownProviderError
from virtual_staging.core.workflow import RoomCategory, StyleProfile
from virtual_staging.providers.base import StageExecutor

WILDCARD = "*"


@dataclass
class ProviderRegistry:
    """Capability table: which provider adapter stages which room/style.

    Routes are looked up most specific first: ``(room, style)``, then
    ``(room, "*")``, then ``("*", style)``, then ``("*", "*")``.
    """
    providers: Dict[str, StageExecutor]
    routes: Dict[tuple[str, str], str] = field(default_factory=dict)

    def get(self, name: str) -> StageExecutor:
        try:
            return self.providers[name]
        except KeyError:
            raise UnknownProviderError(f"No provider registered under {name!r}") from None

    def resolve(self, room: RoomCategory, style: StyleProfile) -> str:
        for key in (
            (room.value, style.value),
            (room.value, WILDCARD),
            (WILDCARD, style.value),
            (WILDCARD, WILDCARD),
        ):
            name = self.routes.get(key)
            if name is not None:
                return name
        raise UnknownProviderError(f"No provider can stage {room.value} in {style.value} style")

    @staticmethod
    def from_routes(providers: list[StageExecutor], routes: Dict[str, str], default: str) -> "ProviderRegistry":
        """Build from ``"room:style"`` keys (``"outdoor"`` alone means ``"outdoor:*"``)."""
        table = {(WILDCARD, WILDCARD): default}
        for key, name in routes.items():
            room, _, style = key.partition(":")
            table[(room.strip() or WILDCARD, style.strip() or WILDCARD)] = name
        registry = ProviderRegistry(providers={p.name: p for p in providers}, routes=table)
        for name in set(table.values()):
            registry.get(name)
        return registry

    @staticmethod
    def single(provider: StageExecutor) -> "ProviderRegistry":
        return ProviderRegistry(
            providers={provider.name: provider},
            routes={(WILDCARD, WILDCARD): provider.name},
        )
