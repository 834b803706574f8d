import logging
from typing import Any, Dict, List, Optional, Sequence

from linkblocks.application.blocks.repository import BlockRepository
from linkblocks.domain.exceptions import ConflictError, NotFoundError, ValidationError
from linkblocks.domain.invariants.block import assert_block_shape, assert_container, assert_no_cycle, coerce_order
from linkblocks.models import ContentBlock
from linkblocks.models.base import utc_now
from linkblocks.utils.transaction import transactional

logger = logging.getLogger(__name__)

LAYOUT_KEY = "layout"


class TreeComposer:
    """
    Attaches, detaches and reorders blocks under page blocks.

    A block has at most one parent; moving it between pages means
    remove_child followed by add_child.
    """

    def __init__(self, repository: BlockRepository):
        self.repository = repository

    def get_children(self, parent_id: str, *, include_unpublished: bool = True) -> List[ContentBlock]:
        self.repository.get(parent_id)
        return self.repository.children_of([parent_id], include_unpublished=include_unpublished)

    def add_child(
        self,
        page_id: str,
        block_id: str,
        order: Optional[int] = None,
        layout_hint: Optional[Dict[str, Any]] = None,
    ) -> ContentBlock:
        page = self.repository.get(page_id)
        block = self.repository.get(block_id)
        if order is not None:
            order = coerce_order(order)

        with transactional():
            assert_container(page)

            if block.parent_id is not None:
                raise ConflictError(
                    f"Block {block.id} is already attached to page {block.parent_id}.",
                    code="already_parented",
                    details={"block_id": block.id, "parent_id": block.parent_id},
                )

            if block.is_landing_block:
                raise ConflictError(
                    "The landing block cannot be nested inside a page.",
                    code="landing_child",
                )

            assert_no_cycle(
                block_id=block.id,
                parent_id=page.id,
                parent_of=self.repository.parent_id_of,
            )

            if order is None:
                order = self.repository.max_child_order(page.id) + 1

            block.parent_id = page.id
            block.type = "child"
            block.display_order = order
            if layout_hint:
                block.meta = {**(block.meta or {}), LAYOUT_KEY: dict(layout_hint)}
            block.updated_at = utc_now()

            assert_block_shape(block)

        logger.info("Attached block %s to page %s at %s", block.id, page.id, block.display_order)
        return block

    def remove_child(self, page_id: str, block_id: str) -> ContentBlock:
        block = ContentBlock.query.filter_by(id=block_id, parent_id=page_id, type="child").first()
        if block is None:
            raise NotFoundError(
                f"Block {block_id} is not a child of {page_id}.",
                details={"block_id": block_id, "page_id": page_id},
            )

        with transactional():
            block.parent_id = None
            block.type = "root"
            block.display_order = 0
            if block.meta and LAYOUT_KEY in block.meta:
                block.meta = {key: value for key, value in block.meta.items() if key != LAYOUT_KEY}
            block.updated_at = utc_now()

            assert_block_shape(block)

        logger.info("Detached block %s from page %s", block.id, page_id)
        return block

    def reorder(self, parent_id: str, ordered_ids: Sequence[str]) -> List[ContentBlock]:
        """
        Rewrite sibling order in one transaction.

        Every listed id must currently be a child of `parent_id`; otherwise the
        whole reorder is rejected. Unlisted children keep their relative order
        after the listed ones.
        """
        self.repository.get(parent_id)

        ordered_ids = list(ordered_ids)
        if len(set(ordered_ids)) != len(ordered_ids):
            raise ValidationError("Duplicate ids in reorder request", code="duplicate_ids")

        with transactional():
            children = self.repository.children_of([parent_id])
            by_id = {child.id: child for child in children}

            foreign = [block_id for block_id in ordered_ids if block_id not in by_id]
            if foreign:
                raise ValidationError(
                    "Reorder lists blocks that are not children of this page.",
                    code="not_children",
                    details={"parent_id": parent_id, "block_ids": foreign},
                )

            listed = set(ordered_ids)
            sequence = [by_id[block_id] for block_id in ordered_ids]
            sequence += [child for child in children if child.id not in listed]

            now = utc_now()
            for position, child in enumerate(sequence):
                if child.display_order != position:
                    child.display_order = position
                    child.updated_at = now

        logger.info("Reordered %d children of %s", len(sequence), parent_id)
        return sequence
