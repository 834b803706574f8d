import logging
from dataclasses import dataclass, field
from typing import Dict, List, NamedTuple, Optional

from sqlalchemy import select

from linkblocks.application.blocks.repository import BlockRepository
from linkblocks.domain.slugs import PriorityPolicy, SlugValidator
from linkblocks.extensions import db
from linkblocks.models import ContentBlock

logger = logging.getLogger(__name__)


class RedirectTarget(NamedTuple):
    block_id: str
    url: str
    status_code: int


@dataclass
class BlockTree:
    block: ContentBlock
    children: List["BlockTree"] = field(default_factory=list)

    def walk(self):
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))


class SlugResolver:
    """
    Maps a slug to the single root block that answers for it.

    Children are only reachable through their page, so a child never answers
    for a top-level slug. Content serving never raises on a missing slug:
    misses come back as None.
    """

    def __init__(self, repository: BlockRepository, policy: PriorityPolicy, validator: SlugValidator):
        self.repository = repository
        self.policy = policy
        self.validator = validator

    def resolve(self, slug: str) -> Optional[ContentBlock]:
        if not self.validator.is_valid_format(slug):
            return None

        candidates = self.repository.published_with_slug(slug, root_only=True)
        if len(candidates) > 1:
            logger.warning(
                "Slug %s is shared by %d published blocks (%s); resolving by priority",
                slug,
                len(candidates),
                ", ".join(block.renderer for block in candidates),
            )
        return self.policy.pick(candidates)

    def resolve_redirect_target(self, slug: str) -> Optional[RedirectTarget]:
        """
        Hot path for the URL shortener: reads two columns of the redirect row
        instead of hydrating the block.
        """
        if not self.validator.is_valid_format(slug):
            return None

        if self._redirect_may_lose():
            winner = self.resolve(slug)
            if winner is None or winner.renderer != "redirect":
                return None
            return self._target(winner.id, winner.data)

        row = db.session.execute(
            select(ContentBlock.id, ContentBlock.data)
            .where(
                ContentBlock.slug == slug,
                ContentBlock.renderer == "redirect",
                ContentBlock.type == "root",
                ContentBlock.is_published,
            )
            .limit(1)
        ).first()

        if row is None:
            return None
        return self._target(row.id, row.data)

    def get_tree(self, slug: str) -> Optional[BlockTree]:
        root = self.resolve(slug)
        if root is None:
            return None
        return self.build_tree(root, include_unpublished=False)

    def get_tree_by_id(self, block_id: str, *, include_unpublished: bool = True) -> Optional[BlockTree]:
        root = self.repository.get_block_by_id(block_id, include_unpublished=include_unpublished)
        if root is None:
            return None
        return self.build_tree(root, include_unpublished=include_unpublished)

    def build_tree(self, root: ContentBlock, *, include_unpublished: bool) -> BlockTree:
        """
        Breadth-first hydration: one query per tree level, nodes indexed by id.
        A node reached twice (corrupt parent chain) is not expanded again.
        """
        tree = BlockTree(root)
        index: Dict[str, BlockTree] = {root.id: tree}
        frontier = [root.id]

        while frontier:
            children = self.repository.children_of(frontier, include_unpublished=include_unpublished)
            frontier = []
            for child in children:
                if child.id in index:
                    logger.warning("Cycle detected under block %s at %s", root.id, child.id)
                    continue
                node = BlockTree(child)
                index[child.id] = node
                index[child.parent_id].children.append(node)
                frontier.append(child.id)

        return tree

    def _redirect_may_lose(self) -> bool:
        redirect_rank = self.policy.priority("redirect")
        if self.policy.default <= redirect_rank:
            return True
        return any(
            rank <= redirect_rank
            for renderer, rank in self.policy.table.items()
            if renderer != "redirect"
        )

    @staticmethod
    def _target(block_id: str, data) -> Optional[RedirectTarget]:
        if not isinstance(data, dict) or not data.get("url"):
            return None
        return RedirectTarget(
            block_id=block_id,
            url=data["url"],
            status_code=int(data.get("status_code") or 301),
        )
