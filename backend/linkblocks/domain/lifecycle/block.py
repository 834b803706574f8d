from typing import Set

from linkblocks.domain.exceptions import ValidationError

BLOCK_STATUSES = ("draft", "published", "archived")

# Explicit allowed state transitions
ALLOWED_BLOCK_TRANSITIONS: dict[str, Set[str]] = {
    "draft": {"published", "archived"},
    "published": {"archived"},
    "archived": {"draft", "published"},
}


def assert_block_transition(*, from_status: str, to_status: str) -> None:
    """
    Guards block lifecycle transitions.
    Single source of truth for status changes.
    """
    if to_status not in BLOCK_STATUSES:
        raise ValidationError(f"Unknown block status: {to_status}", code="invalid_status")

    allowed = ALLOWED_BLOCK_TRANSITIONS.get(from_status, set())

    if to_status not in allowed:
        raise ValidationError(
            f"Illegal block transition: {from_status} -> {to_status}",
            code="illegal_transition",
        )


def occupies_namespace(status: str) -> bool:
    """Only published blocks hold their slug."""
    return status == "published"
