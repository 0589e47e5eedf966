from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional

from webstack.domain.models import ResourceConfig
from webstack.graph.resources import LambdaFunction


@dataclass(frozen=True)
class FunctionEntry:
    function: LambdaFunction
    config: ResourceConfig
    node_index: int


class ResourceRegistry:
    """(method, canonical path) -> FunctionEntry, owned by one provisioning session."""

    def __init__(self) -> None:
        self._entries: dict[tuple[str, str], FunctionEntry] = {}

    def register(self, config: ResourceConfig, entry: FunctionEntry) -> Optional[FunctionEntry]:
        """Store ``entry``; returns the entry it replaced, if any."""
        previous = self._entries.get(config.key)
        self._entries[config.key] = entry
        return previous

    def lookup(self, method: str, path: str) -> Optional[FunctionEntry]:
        return self._entries.get((method.upper(), path))

    def all(self) -> list[FunctionEntry]:
        return list(self._entries.values())

    def keys(self) -> list[tuple[str, str]]:
        return list(self._entries.keys())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[FunctionEntry]:
        return iter(list(self._entries.values()))
