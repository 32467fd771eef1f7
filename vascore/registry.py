from __future__ import annotations
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Set
import logging

from .errors import AliasError, AmbiguousAliasError

logger = logging.getLogger(__name__)

AMBIGUOUS = -1

def alias_names(zone: str, watcher: str, image: str) -> List[str]:
    return [
        zone,
        f"{zone}/{watcher}",
        watcher,
        f"{zone}/{watcher}/{image}",
        f"{zone}/{image}",
        f"{watcher}/{image}",
        image,
    ]

class NameRegistry:
    """Alias -> feature index. Aliases claimed by more than one feature map to ``AMBIGUOUS`` for good."""

    def __init__(self):
        self._names: Dict[str, int] = {}
        self._ambiguous: Set[str] = set()

    def register(self, index: int, aliases: Iterable[str]) -> None:
        for name in aliases:
            current = self._names.get(name)
            if current is None:
                self._names[name] = index
            elif current != index or name in self._ambiguous:
                self._names[name] = AMBIGUOUS
                self._ambiguous.add(name)

    def resolve(self, name: str) -> int:
        try:
            index = self._names[name]
        except KeyError:
            raise AliasError(name) from None
        if index == AMBIGUOUS:
            raise AmbiguousAliasError(name)
        return index

    def __contains__(self, name: str) -> bool:
        return name in self._names

    def __len__(self) -> int:
        return len(self._names)

    @property
    def ambiguous(self) -> Set[str]:
        return set(self._ambiguous)

    def unindexed(self, feature_count: int) -> List[int]:
        values = set(self._names.values())
        return [i for i in range(feature_count) if i not in values]

    def validate(self, feature_count: int) -> List[str]:
        if self._ambiguous:
            logger.debug("Ambiguous aliases: %s", ", ".join(sorted(self._ambiguous)))
        warnings = []
        for i in self.unindexed(feature_count):
            msg = f"Feature #{i}'s name was not indexed."
            logger.warning(msg)
            warnings.append(msg)
        return warnings

    def as_dict(self) -> Mapping[str, int]:
        return MappingProxyType(self._names)
