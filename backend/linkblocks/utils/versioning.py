from typing import Optional

from linkblocks.extensions import db
from linkblocks.models.block_revision import BlockRevision


def snapshot_block(block) -> dict:
    return {
        "data": block.data,
        "metadata": block.meta,
    }


def record_revision(block, *, actor_id: Optional[str] = None) -> BlockRevision:
    """
    Stores the block's current payload before it is overwritten.
    Caller owns the transaction.
    """
    snapshot = snapshot_block(block)

    revision = BlockRevision()
    revision.block_id = block.id
    revision.data = snapshot["data"] or {}
    revision.meta = snapshot["metadata"] or {}
    revision.created_by = actor_id

    db.session.add(revision)
    return revision
