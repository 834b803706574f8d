from typing import Callable, Optional

from linkblocks.domain.exceptions import ConflictError, ValidationError

CONTAINER_RENDERERS = frozenset({"page"})


def assert_block_shape(block) -> None:
    """A child always has a parent; a root never does."""
    if block.type == "child" and not block.parent_id:
        raise ValidationError(
            f"Child block {block.id} must reference a parent.",
            code="orphan_child",
        )

    if block.type == "root" and block.parent_id:
        raise ValidationError(
            f"Root block {block.id} cannot reference a parent.",
            code="parented_root",
        )

    if block.type not in ("root", "child"):
        raise ValidationError(f"Unknown block type: {block.type}", code="invalid_type")


def assert_container(parent) -> None:
    if parent.renderer not in CONTAINER_RENDERERS:
        raise ConflictError(
            f"Block {parent.id} is a {parent.renderer} block and cannot hold children.",
            code="not_a_page",
            details={"parent_id": parent.id, "renderer": parent.renderer},
        )


def assert_no_cycle(
    *,
    block_id: str,
    parent_id: str,
    parent_of: Callable[[str], Optional[str]],
) -> None:
    """
    Walks the ancestor chain of `parent_id` and rejects attaching `block_id`
    under it if the chain reaches `block_id` (or loops on itself).
    """
    seen = set()
    current: Optional[str] = parent_id

    while current is not None:
        if current == block_id:
            raise ConflictError(
                "Attaching this block would create a cycle.",
                code="cycle",
                details={"block_id": block_id, "parent_id": parent_id},
            )
        if current in seen:
            raise ConflictError(
                "Parent chain is already cyclic.",
                code="cycle",
                details={"parent_id": parent_id},
            )
        seen.add(current)
        current = parent_of(current)


def coerce_order(value) -> int:
    """Sibling position as an int; ValidationError for anything non-integral."""
    if isinstance(value, bool):
        raise ValidationError("Order must be an integer.", code="invalid_order", details={"order": value})
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            "Order must be an integer.",
            code="invalid_order",
            details={"order": value},
        ) from exc
