from sqlalchemy.ext.hybrid import hybrid_property
from linkblocks.extensions import db
from .base import BaseModel
from .tag import block_tags

BLOCK_TYPES = ("root", "child")
RENDERERS = ("redirect", "article", "image", "card", "gallery", "page", "heading", "text")


class ContentBlock(BaseModel):
    __tablename__ = "content_blocks"

    slug = db.Column(db.String(50), nullable=False, index=True)
    type = db.Column(db.String(20), nullable=False, default="root", index=True)  # root | child
    parent_id = db.Column(
        db.String(36),
        db.ForeignKey("content_blocks.id"),
        nullable=True,
        index=True,
    )
    renderer = db.Column(db.String(50), nullable=False, index=True)
    data = db.Column(db.JSON, nullable=False, default=dict)
    # "metadata" is reserved on declarative classes
    meta = db.Column("metadata", db.JSON, nullable=False, default=dict)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(20), nullable=False, default="published", index=True)
    # draft | published | archived
    is_landing_block = db.Column(db.Boolean, nullable=False, default=False)
    is_private = db.Column(db.Boolean, nullable=False, default=False)

    tags = db.relationship("Tag", secondary=block_tags, lazy="selectin")

    __table_args__ = (
        db.Index("idx_blocks_parent_order", "parent_id", "display_order"),
        db.Index(
            "uq_blocks_published_slug_renderer",
            "slug",
            "renderer",
            unique=True,
            sqlite_where=db.text("status = 'published'"),
            postgresql_where=db.text("status = 'published'"),
        ),
        db.Index(
            "uq_blocks_single_landing",
            "is_landing_block",
            unique=True,
            sqlite_where=db.text("is_landing_block = 1"),
            postgresql_where=db.text("is_landing_block"),
        ),
    )

    @hybrid_property
    def is_published(self):
        return self.status == "published"

    @is_published.expression
    def is_published(cls):
        return cls.status == "published"

    def __repr__(self):
        return f"<ContentBlock {self.renderer}:{self.slug} ({self.status})>"
