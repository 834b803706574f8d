import time
from datetime import datetime, timezone
from typing import Callable, List, Optional

from slugify import slugify

from linkblocks.domain.slugs import SlugValidator

MAX_NUMBERED_SUFFIX = 100
SUGGESTION_SUFFIXES = 5


class SlugGenerator:
    """
    Derives an available slug from a human title.

    Probe order: base, base-1 .. base-100, then base-<unix timestamp>,
    so generation finishes within 102 availability checks.
    """

    def __init__(
        self,
        validator: SlugValidator,
        is_taken: Callable[[str], bool],
        *,
        clock: Callable[[], float] = time.time,
    ):
        self.validator = validator
        self.is_taken = is_taken
        self.clock = clock

    @property
    def max_length(self) -> int:
        return self.validator.max_length

    def normalize(self, title: str, renderer_hint: str) -> str:
        base = slugify(title or "", lowercase=True, separator="-")

        if len(base) < self.validator.min_length:
            base = f"{renderer_hint}-{base}" if base else renderer_hint

        return self._fit(base)

    def is_available(self, candidate: str) -> bool:
        if not self.validator.is_valid_format(candidate):
            return False
        if self.validator.is_reserved(candidate):
            return False
        return not self.is_taken(candidate)

    def generate_unique(self, title: str, renderer_hint: str) -> str:
        base = self.normalize(title, renderer_hint)

        if self.is_available(base):
            return base

        for counter in range(1, MAX_NUMBERED_SUFFIX + 1):
            candidate = self._with_suffix(base, str(counter))
            if self.is_available(candidate):
                return candidate

        # Bounded fallback: timestamps are not probed again
        return self._with_suffix(base, str(int(self.clock())))

    def suggest_alternatives(self, desired: str, renderer: str, *, limit: int = 3) -> List[str]:
        desired = self._fit(slugify(desired or "", lowercase=True, separator="-") or renderer)
        year = datetime.now(timezone.utc).year

        candidates = [self._fit(f"{renderer}-{desired}")]
        candidates += [self._with_suffix(desired, str(i)) for i in range(1, SUGGESTION_SUFFIXES + 1)]
        candidates.append(self._with_suffix(desired, str(year)))

        suggestions: List[str] = []
        for candidate in candidates:
            if candidate not in suggestions and self.is_available(candidate):
                suggestions.append(candidate)
            if len(suggestions) >= limit:
                break
        return suggestions

    def _fit(self, value: str, limit: Optional[int] = None) -> str:
        limit = self.max_length if limit is None else limit
        return value[:limit].rstrip("-")

    def _with_suffix(self, base: str, suffix: str) -> str:
        room = self.max_length - len(suffix) - 1
        return f"{self._fit(base, room)}-{suffix}"
