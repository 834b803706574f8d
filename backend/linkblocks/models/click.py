from linkblocks.extensions import db
from .base import BaseModel, utc_now


class Click(BaseModel):
    __tablename__ = "clicks"

    __table_args__ = (
        db.Index("idx_clicks_block_timestamp", "block_id", "timestamp"),
    )

    block_id = db.Column(
        db.String(36),
        db.ForeignKey("content_blocks.id", ondelete="CASCADE"),
        nullable=False,
    )
    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now, index=True)
    referrer = db.Column(db.String(500), nullable=True)
    user_agent = db.Column(db.Text, nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)  # IPv6 compatible
    country = db.Column(db.String(2), nullable=True)  # ISO 3166 alpha-2
    meta = db.Column("metadata", db.JSON, nullable=False, default=dict)
