import logging
from typing import List

from linkblocks.application.blocks.repository import BlockRepository
from linkblocks.extensions import db
from linkblocks.models import BlockRevision, Click, ContentBlock, block_tags
from linkblocks.utils.transaction import transactional

logger = logging.getLogger(__name__)


class CascadeDeleter:
    """
    The only hard-delete path. Removes a block, its whole subtree, and every
    dependent row in a single transaction.
    """

    def __init__(self, repository: BlockRepository):
        self.repository = repository

    def collect_subtree(self, block_id: str) -> List[str]:
        """
        Ids of `block_id` and all descendants in pre-order. Iterative, and a
        node is never visited twice even if the stored tree is cyclic.
        """
        order: List[str] = []
        seen = set()
        stack = [block_id]

        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            order.append(current)

            children = self.repository.children_of([current])
            stack.extend(child.id for child in reversed(children))

        return order

    def delete_subtree(self, block_id: str) -> List[str]:
        root = self.repository.get(block_id)

        with transactional():
            ids = self.collect_subtree(root.id)

            # Deepest nodes first, so no row is removed before its children
            for node_id in reversed(ids):
                self._delete_node(node_id)

        logger.info("Deleted subtree of %s (%d blocks)", block_id, len(ids))
        return ids

    def _delete_node(self, node_id: str) -> None:
        tags = db.session.execute(
            block_tags.delete().where(block_tags.c.block_id == node_id)
        ).rowcount
        revisions = BlockRevision.query.filter_by(block_id=node_id).delete(synchronize_session=False)
        clicks = Click.query.filter_by(block_id=node_id).delete(synchronize_session=False)
        removed = ContentBlock.query.filter_by(id=node_id).delete(synchronize_session=False)

        if removed == 0:
            raise RuntimeError(f"Block {node_id} disappeared during cascade delete")

        logger.debug(
            "Deleted block %s (%d tags, %d revisions, %d clicks)",
            node_id, tags, revisions, clicks,
        )
