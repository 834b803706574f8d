from datetime import datetime, timezone
from types import MappingProxyType
from typing import Mapping, Tuple

from linkblocks.utils.timestamps import normalize_ts

LOWEST_PRIORITY = 999

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class PriorityPolicy:
    """
    Static total order over renderer tags. Lower number wins a shared slug.
    Renderers missing from the table rank last.
    """

    def __init__(self, priorities: Mapping[str, int], *, default: int = LOWEST_PRIORITY):
        self._priorities = MappingProxyType(dict(priorities))
        self.default = default

    @property
    def table(self) -> Mapping[str, int]:
        return self._priorities

    def priority(self, renderer: str) -> int:
        return self._priorities.get(renderer, self.default)

    def sort_key(self, block) -> Tuple[int, datetime, str]:
        created_at = normalize_ts(block.created_at) if block.created_at else _EPOCH
        return (self.priority(block.renderer), created_at, block.id or "")

    def pick(self, blocks):
        """Winner among blocks sharing a slug, or None for an empty sequence."""
        if not blocks:
            return None
        return min(blocks, key=self.sort_key)

    def outranks(self, renderer: str, other: str) -> bool:
        return self.priority(renderer) < self.priority(other)
