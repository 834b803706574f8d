from .tag import Tag, block_tags
from .content_block import ContentBlock, BLOCK_TYPES, RENDERERS
from .click import Click
from .block_revision import BlockRevision

__all__ = [
    "Tag",
    "block_tags",
    "ContentBlock",
    "BLOCK_TYPES",
    "RENDERERS",
    "Click",
    "BlockRevision",
]
