from linkblocks.extensions import db
from .base import BaseModel

block_tags = db.Table(
    "block_tags",
    db.Column(
        "block_id",
        db.String(36),
        db.ForeignKey("content_blocks.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    db.Column(
        "tag_id",
        db.String(36),
        db.ForeignKey("tags.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    db.Index("idx_block_tags_tag", "tag_id"),
)


class Tag(BaseModel):
    __tablename__ = "tags"

    name = db.Column(db.String(100), unique=True, nullable=False)
    slug = db.Column(db.String(100), unique=True, nullable=False, index=True)
    color = db.Column(db.String(7), nullable=False, default="#6b7280")
