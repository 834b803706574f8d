import logging
from typing import Any, Dict, Iterable, List, Optional

from slugify import slugify
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from linkblocks.domain.exceptions import ConflictError, NotFoundError, ValidationError
from linkblocks.domain.invariants.block import assert_block_shape, assert_container, coerce_order
from linkblocks.domain.lifecycle.block import assert_block_transition, occupies_namespace
from linkblocks.domain.payloads import merge_payload, payload_model, process_payload
from linkblocks.domain.slugs import PriorityPolicy, SlugValidator
from linkblocks.extensions import db
from linkblocks.models import ContentBlock, Tag
from linkblocks.models.base import utc_now
from linkblocks.utils.pagination import CursorMeta, paginate_cursor
from linkblocks.utils.transaction import transactional
from linkblocks.utils.versioning import record_revision

logger = logging.getLogger(__name__)

CREATE_FIELDS = {
    "slug",
    "renderer",
    "data",
    "metadata",
    "parent_id",
    "display_order",
    "status",
    "is_published",
    "is_private",
    "is_landing_block",
}

ALLOWED_UPDATE_FIELDS = {
    "slug",
    "data",
    "metadata",
    "display_order",
    "status",
    "is_published",
    "is_private",
}

# Structural fields only TreeComposer / CascadeDeleter may touch
STRUCTURAL_FIELDS = {"renderer", "parent_id", "type", "id"}


class BlockRepository:
    """
    CRUD and tree-shaped queries over the content-block store.

    Every public mutation runs inside exactly one `transactional()` block.
    """

    def __init__(self, validator: SlugValidator, policy: PriorityPolicy):
        self.validator = validator
        self.policy = policy

    # ------------------------
    # Reads
    # ------------------------

    def get(self, block_id: str) -> ContentBlock:
        """Any block by id regardless of status; NotFoundError if missing."""
        block = db.session.get(ContentBlock, block_id) if block_id else None
        if block is None:
            raise NotFoundError(f"Block {block_id} not found", details={"block_id": block_id})
        return block

    def get_block_by_id(self, block_id: str, *, include_unpublished: bool = False) -> Optional[ContentBlock]:
        block = db.session.get(ContentBlock, block_id) if block_id else None
        if block is None:
            return None
        if not include_unpublished and not block.is_published:
            return None
        return block

    def published_with_slug(self, slug: str, *, root_only: bool = False) -> List[ContentBlock]:
        query = ContentBlock.query.filter(
            ContentBlock.slug == slug,
            ContentBlock.is_published,
        )
        if root_only:
            query = query.filter(ContentBlock.type == "root")
        return query.order_by(ContentBlock.created_at.asc(), ContentBlock.id.asc()).all()

    def get_block_by_slug(self, slug: str, *, include_unpublished: bool = False) -> Optional[ContentBlock]:
        """Root block addressed by `slug`; priority winner when several share it."""
        winner = self.policy.pick(self.published_with_slug(slug, root_only=True))
        if winner is not None or not include_unpublished:
            return winner

        # Drafts and archived rows: most recently touched first
        return (
            ContentBlock.query
            .filter(ContentBlock.slug == slug, ContentBlock.type == "root")
            .order_by(ContentBlock.updated_at.desc(), ContentBlock.id.desc())
            .first()
        )

    def get_blocks_by_renderer(
        self,
        renderer: str,
        *,
        limit: int = 50,
        offset: int = 0,
        include_unpublished: bool = False,
    ) -> List[ContentBlock]:
        query = ContentBlock.query.filter(ContentBlock.renderer == renderer)
        if not include_unpublished:
            query = query.filter(ContentBlock.is_published)
        return (
            query.order_by(ContentBlock.updated_at.desc(), ContentBlock.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    def list_blocks(
        self,
        *,
        renderer: Optional[str] = None,
        block_type: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 20,
        cursor: Optional[str] = None,
    ) -> tuple[List[ContentBlock], CursorMeta]:
        query = ContentBlock.query
        if renderer:
            query = query.filter(ContentBlock.renderer == renderer)
        if block_type:
            query = query.filter(ContentBlock.type == block_type)
        if status:
            query = query.filter(ContentBlock.status == status)
        return paginate_cursor(query, model=ContentBlock, limit=limit, cursor=cursor)

    def children_of(self, parent_ids: Iterable[str], *, include_unpublished: bool = True) -> List[ContentBlock]:
        """Direct children of every id in `parent_ids`, sibling-ordered."""
        parent_ids = list(parent_ids)
        if not parent_ids:
            return []
        query = ContentBlock.query.filter(ContentBlock.parent_id.in_(parent_ids))
        if not include_unpublished:
            query = query.filter(ContentBlock.is_published)
        return query.order_by(
            ContentBlock.parent_id,
            ContentBlock.display_order.asc(),
            ContentBlock.created_at.asc(),
        ).all()

    def parent_id_of(self, block_id: str) -> Optional[str]:
        return db.session.execute(
            select(ContentBlock.parent_id).where(ContentBlock.id == block_id)
        ).scalar_one_or_none()

    def max_child_order(self, parent_id: str) -> int:
        return db.session.execute(
            select(func.max(ContentBlock.display_order)).where(ContentBlock.parent_id == parent_id)
        ).scalar() or 0

    # ------------------------
    # Slug namespace
    # ------------------------

    def is_slug_taken(self, slug: str, *, exclude_id: Optional[str] = None) -> bool:
        query = select(ContentBlock.id).where(
            ContentBlock.slug == slug,
            ContentBlock.is_published,
        )
        if exclude_id:
            query = query.where(ContentBlock.id != exclude_id)
        return db.session.execute(query.limit(1)).first() is not None

    def is_slug_available(self, slug: str) -> bool:
        if not self.validator.is_valid_format(slug) or self.validator.is_reserved(slug):
            return False
        return not self.is_slug_taken(slug)

    def _claim_slug(self, slug: str, *, exclude_id: Optional[str] = None) -> str:
        """
        Check-then-insert claim on the shared namespace.

        Storage only backs this per renderer: the partial unique index is on
        (slug, renderer) among published rows, because legacy imports may
        legitimately share a slug across renderers. Two concurrent writers
        claiming the same slug with different renderers can therefore both
        commit. That race is tolerated: SlugResolver still picks a single
        winner by priority, and the loser shows up in the shared-slug
        warning it logs.
        """
        self.validator.validate(slug)

        query = ContentBlock.query.filter(ContentBlock.slug == slug, ContentBlock.is_published)
        if exclude_id:
            query = query.filter(ContentBlock.id != exclude_id)
        holder = query.first()
        if holder is not None:
            raise ConflictError(
                f'Slug "{slug}" is already taken by a {holder.renderer}.',
                code="slug_taken",
                details={"slug": slug, "renderer": holder.renderer, "block_id": holder.id},
            )
        return slug

    # ------------------------
    # Writes
    # ------------------------

    def create_block(self, spec: Dict[str, Any], *, actor_id: Optional[str] = None) -> ContentBlock:
        """
        Create a block and reserve its slug.

        Edge cases handled:
        - Bad or reserved slugs (ValidationError)
        - Slug held by a published block (ConflictError)
        - Missing or non-page parent
        - Landing flag swap in the same transaction
        """
        return self._insert(spec, enforce_namespace=True, actor_id=actor_id)

    def import_legacy_block(self, spec: Dict[str, Any], *, actor_id: Optional[str] = None) -> ContentBlock:
        """
        Insert a row carried over from the per-type tables that predate the
        shared namespace. Skips the cross-renderer uniqueness check, so the
        slug may end up shared with a different renderer; SlugResolver
        arbitrates those by priority. The storage engine still rejects two
        published rows with the same slug and renderer.
        """
        return self._insert(spec, enforce_namespace=False, actor_id=actor_id)

    def _insert(self, spec: Dict[str, Any], *, enforce_namespace: bool, actor_id: Optional[str]) -> ContentBlock:
        unknown = set(spec) - CREATE_FIELDS
        if unknown:
            raise ValidationError(
                f"Unknown fields: {', '.join(sorted(unknown))}",
                code="unknown_fields",
            )

        slug = spec.get("slug")
        renderer = spec.get("renderer")
        if not slug or not renderer:
            raise ValidationError("Both slug and renderer are required", code="missing_fields")

        payload_model(renderer)
        status = self._initial_status(spec)

        with transactional():
            if enforce_namespace:
                self._claim_slug(slug)
            else:
                self.validator.validate(slug)

            block = ContentBlock()
            block.slug = slug
            block.renderer = renderer
            block.data = process_payload(renderer, spec.get("data"))
            block.meta = dict(spec.get("metadata") or {})
            block.status = status
            block.is_private = bool(spec.get("is_private", False))
            block.is_landing_block = False

            parent_id = spec.get("parent_id")
            if parent_id:
                parent = self.get(parent_id)
                assert_container(parent)
                block.parent_id = parent.id
                block.type = "child"
                order = spec.get("display_order")
                block.display_order = coerce_order(order) if order is not None else self.max_child_order(parent.id) + 1
            else:
                block.parent_id = None
                block.type = "root"
                block.display_order = coerce_order(spec.get("display_order") or 0)

            assert_block_shape(block)

            db.session.add(block)
            self._flush(slug)

            if spec.get("is_landing_block"):
                self._swap_landing(block)

            logger.info(
                "Created %s block %s (slug=%s, status=%s, parent=%s)",
                block.renderer, block.id, block.slug, block.status, block.parent_id,
            )

        return block

    def update_block(
        self,
        block_id: str,
        changes: Dict[str, Any],
        *,
        actor_id: Optional[str] = None,
    ) -> ContentBlock:
        """
        Update mutable fields on a block.

        Design rules:
        - Only whitelisted fields are mutable
        - Renderer and tree position never change here
        - No silent no-op updates
        """
        structural = set(changes) & STRUCTURAL_FIELDS
        block = self.get(block_id)

        if "renderer" in structural and changes["renderer"] != block.renderer:
            raise ValidationError(
                "Renderer is immutable; delete and recreate the block instead.",
                code="renderer_immutable",
            )
        if structural - {"renderer"}:
            raise ValidationError(
                "Use the composition endpoints to move blocks between pages.",
                code="structural_field",
                details={"fields": sorted(structural - {"renderer"})},
            )

        new_order = coerce_order(changes["display_order"]) if "display_order" in changes else None
        changed_fields: list[str] = []

        with transactional():
            target_status = self._target_status(block, changes)
            target_slug = changes.get("slug", block.slug)

            if target_status != block.status:
                assert_block_transition(from_status=block.status, to_status=target_status)

            if target_slug != block.slug or (
                occupies_namespace(target_status) and not occupies_namespace(block.status)
            ):
                if occupies_namespace(target_status):
                    self._claim_slug(target_slug, exclude_id=block.id)
                else:
                    self.validator.validate(target_slug)

            new_data = block.data
            if "data" in changes:
                new_data = process_payload(block.renderer, changes["data"])

            new_meta = block.meta
            if "metadata" in changes:
                new_meta = dict(changes["metadata"] or {})

            if new_data != block.data or new_meta != block.meta:
                record_revision(block, actor_id=actor_id)

            for field, value in (
                ("slug", target_slug),
                ("status", target_status),
                ("data", new_data),
                ("meta", new_meta),
            ):
                if getattr(block, field) != value:
                    setattr(block, field, value)
                    changed_fields.append(field)

            if new_order is not None and block.display_order != new_order:
                block.display_order = new_order
                changed_fields.append("display_order")

            if "is_private" in changes and block.is_private != bool(changes["is_private"]):
                if changes["is_private"] and block.is_landing_block:
                    raise ConflictError("The landing block must stay public.", code="landing_private")
                block.is_private = bool(changes["is_private"])
                changed_fields.append("is_private")

            if not changed_fields:
                # Explicitly fail instead of silently succeeding
                raise ValidationError("No valid fields provided for update", code="no_changes")

            if not block.is_published and block.is_landing_block:
                block.is_landing_block = False

            block.updated_at = utc_now()
            self._flush(block.slug)

            logger.info("Updated block %s fields=%s", block.id, changed_fields)

        return block

    def update_block_data(
        self,
        block_id: str,
        data: Dict[str, Any],
        metadata: Optional[Dict[str, Any]] = None,
        *,
        actor_id: Optional[str] = None,
    ) -> ContentBlock:
        """
        Merge `data` into the existing payload (revalidated for the block's
        renderer) and replace metadata when given.
        """
        block = self.get(block_id)

        with transactional():
            record_revision(block, actor_id=actor_id)
            block.data = merge_payload(block.renderer, block.data, data or {})
            if metadata is not None:
                block.meta = dict(metadata)
            block.updated_at = utc_now()
            db.session.flush()

        return block

    def deactivate_block(self, block_id: str) -> ContentBlock:
        """Soft delete: archive the block and free its slug."""
        block = self.get(block_id)
        if block.status == "archived":
            return block

        with transactional():
            assert_block_transition(from_status=block.status, to_status="archived")
            block.status = "archived"
            block.is_landing_block = False
            block.updated_at = utc_now()

        logger.info("Archived block %s (slug %s released)", block.id, block.slug)
        return block

    def publish_block(self, block_id: str) -> ContentBlock:
        block = self.get(block_id)
        if block.is_published:
            return block

        with transactional():
            assert_block_transition(from_status=block.status, to_status="published")
            self._claim_slug(block.slug, exclude_id=block.id)
            block.status = "published"
            block.updated_at = utc_now()
            self._flush(block.slug)

        logger.info("Published block %s (slug=%s)", block.id, block.slug)
        return block

    # ------------------------
    # Landing block & privacy
    # ------------------------

    def get_landing_block(self) -> Optional[ContentBlock]:
        return ContentBlock.query.filter(
            ContentBlock.is_landing_block.is_(True),
            ContentBlock.is_published,
        ).first()

    def set_landing_block(self, block_id: str) -> ContentBlock:
        """
        Make `block_id` the single landing block; it is forced public.
        """
        block = self.get(block_id)

        with transactional():
            self._swap_landing(block)

        logger.info("Landing block set to %s (slug=%s)", block.id, block.slug)
        return block

    def clear_landing_block(self) -> int:
        with transactional():
            cleared = ContentBlock.query.filter(
                ContentBlock.is_landing_block.is_(True)
            ).update(
                {"is_landing_block": False, "updated_at": utc_now()},
                synchronize_session="fetch",
            )
        return cleared

    def _swap_landing(self, block: ContentBlock) -> None:
        if not block.is_published:
            raise ConflictError("Only published blocks can be the landing block.", code="not_published")
        if block.type != "root":
            raise ConflictError("Child blocks cannot be the landing block.", code="landing_child")

        ContentBlock.query.filter(
            ContentBlock.is_landing_block.is_(True),
            ContentBlock.id != block.id,
        ).update(
            {"is_landing_block": False, "updated_at": utc_now()},
            synchronize_session="fetch",
        )
        db.session.flush()

        block.is_landing_block = True
        block.is_private = False
        block.updated_at = utc_now()
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise ConflictError(
                "Another landing block was claimed concurrently.",
                code="landing_conflict",
            ) from exc

    def set_privacy(self, block_id: str, is_private: bool) -> ContentBlock:
        block = self.get(block_id)

        with transactional():
            if is_private and block.is_landing_block:
                raise ConflictError("The landing block must stay public.", code="landing_private")
            block.is_private = bool(is_private)
            block.updated_at = utc_now()

        return block

    def toggle_privacy(self, block_id: str) -> ContentBlock:
        block = self.get(block_id)
        return self.set_privacy(block_id, not block.is_private)

    def get_public_blocks(self) -> List[ContentBlock]:
        """Published, non-private root blocks for the index listing."""
        return (
            ContentBlock.query
            .filter(
                ContentBlock.is_published,
                ContentBlock.is_private.is_(False),
                ContentBlock.type == "root",
            )
            .order_by(ContentBlock.display_order.asc(), ContentBlock.updated_at.desc())
            .all()
        )

    # ------------------------
    # Tags & stats
    # ------------------------

    def set_tags(self, block_id: str, names: Iterable[str]) -> ContentBlock:
        block = self.get(block_id)

        with transactional():
            tags = []
            for name in names:
                name = (name or "").strip()
                if not name:
                    continue
                tag_slug = slugify(name, max_length=100)
                if not tag_slug:
                    raise ValidationError(f"Tag name {name!r} has no usable characters", code="invalid_tag")
                tag = Tag.query.filter_by(slug=tag_slug).first()
                if tag is None:
                    tag = Tag()
                    tag.name = name
                    tag.slug = tag_slug
                    db.session.add(tag)
                if tag not in tags:
                    tags.append(tag)
            block.tags = tags
            block.updated_at = utc_now()

        return block

    def get_block_stats(self) -> Dict[str, Any]:
        total = db.session.execute(select(func.count(ContentBlock.id))).scalar() or 0
        published = db.session.execute(
            select(func.count(ContentBlock.id)).where(ContentBlock.is_published)
        ).scalar() or 0
        by_renderer = db.session.execute(
            select(ContentBlock.renderer, func.count(ContentBlock.id))
            .where(ContentBlock.is_published)
            .group_by(ContentBlock.renderer)
        ).all()

        return {
            "total_blocks": total,
            "published_blocks": published,
            "by_renderer": {renderer: count for renderer, count in by_renderer},
        }

    # ------------------------
    # Helpers
    # ------------------------

    @staticmethod
    def _initial_status(spec: Dict[str, Any]) -> str:
        status = spec.get("status")
        if status is None:
            status = "published" if spec.get("is_published", True) else "draft"
        if status not in ("draft", "published"):
            raise ValidationError(
                f"New blocks must start as draft or published, not {status}",
                code="invalid_status",
            )
        return status

    @staticmethod
    def _target_status(block: ContentBlock, changes: Dict[str, Any]) -> str:
        if "status" in changes:
            return changes["status"]
        if "is_published" in changes:
            if changes["is_published"]:
                return "published"
            return "archived" if block.is_published else block.status
        return block.status

    @staticmethod
    def _flush(slug: str) -> None:
        try:
            db.session.flush()
        except IntegrityError as exc:
            # Unique index backstop for the check-then-insert race
            raise ConflictError(
                f'Slug "{slug}" is already taken.',
                code="slug_taken",
                details={"slug": slug},
            ) from exc
