import re
from typing import Iterable

from linkblocks.domain.exceptions import ValidationError

SLUG_CHARSET = re.compile(r"[a-z0-9_-]+")


class SlugValidator:
    """
    Format and reserved-word checks for the shared slug namespace.

    Pure: holds only the configuration it was built with.
    """

    def __init__(
        self,
        reserved: Iterable[str] = (),
        *,
        min_length: int = 3,
        max_length: int = 50,
    ):
        self.reserved = frozenset(word.lower() for word in reserved)
        self.min_length = min_length
        self.max_length = max_length

    def is_reserved(self, slug: str) -> bool:
        return slug.lower() in self.reserved

    def is_valid_format(self, slug) -> bool:
        if not isinstance(slug, str):
            return False
        if not self.min_length <= len(slug) <= self.max_length:
            return False
        return SLUG_CHARSET.fullmatch(slug) is not None

    def validate(self, candidate) -> str:
        """
        Returns the candidate unchanged or raises ValidationError with
        code "invalid_format" or "reserved".
        """
        if not self.is_valid_format(candidate):
            raise ValidationError(
                f"Invalid slug format. Use {self.min_length}-{self.max_length} lowercase "
                "letters, numbers, hyphens, or underscores.",
                code="invalid_format",
                details={"slug": candidate},
            )

        if self.is_reserved(candidate):
            raise ValidationError(
                f'Slug "{candidate}" is reserved and cannot be used.',
                code="reserved",
                details={"slug": candidate},
            )

        return candidate
