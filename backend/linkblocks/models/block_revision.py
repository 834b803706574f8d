from linkblocks.extensions import db
from .base import BaseModel


class BlockRevision(BaseModel):
    __tablename__ = "block_revisions"

    block_id = db.Column(
        db.String(36),
        db.ForeignKey("content_blocks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    data = db.Column(db.JSON, nullable=False)
    meta = db.Column("metadata", db.JSON, nullable=True)
    created_by = db.Column(db.String(36), nullable=True)
