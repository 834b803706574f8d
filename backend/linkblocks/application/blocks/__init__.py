from .repository import BlockRepository
from .slug_generator import SlugGenerator
from .resolver import BlockTree, RedirectTarget, SlugResolver
from .tree_composer import TreeComposer
from .cascade import CascadeDeleter

__all__ = [
    "BlockRepository",
    "SlugGenerator",
    "BlockTree",
    "RedirectTarget",
    "SlugResolver",
    "TreeComposer",
    "CascadeDeleter",
]
