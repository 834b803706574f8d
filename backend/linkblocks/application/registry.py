from typing import Any, Dict, List, Mapping, Optional, Sequence

from flask import current_app

from linkblocks.application.analytics import reports
from linkblocks.application.analytics.geolocation import GeoLocator
from linkblocks.application.analytics.recorder import AnalyticsRecorder
from linkblocks.application.blocks import (
    BlockRepository,
    BlockTree,
    CascadeDeleter,
    RedirectTarget,
    SlugGenerator,
    SlugResolver,
    TreeComposer,
)
from linkblocks.domain.slugs import PriorityPolicy, SlugValidator
from linkblocks.models import ContentBlock

EXTENSION_KEY = "block_registry"


class BlockRegistry:
    """
    Wires the slug, tree and analytics components together and exposes the
    operations the HTTP layer and the CLI call.
    """

    def __init__(
        self,
        *,
        validator: SlugValidator,
        policy: PriorityPolicy,
        recorder: AnalyticsRecorder,
    ):
        self.validator = validator
        self.policy = policy
        self.repository = BlockRepository(validator, policy)
        self.generator = SlugGenerator(validator, self.repository.is_slug_taken)
        self.resolver = SlugResolver(self.repository, policy, validator)
        self.composer = TreeComposer(self.repository)
        self.deleter = CascadeDeleter(self.repository)
        self.recorder = recorder

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "BlockRegistry":
        validator = SlugValidator(
            config["RESERVED_SLUGS"],
            min_length=config["SLUG_MIN_LENGTH"],
            max_length=config["SLUG_MAX_LENGTH"],
        )
        policy = PriorityPolicy(config["RENDERER_PRIORITIES"])
        geolocator = GeoLocator(
            url_template=config["GEOIP_URL_TEMPLATE"],
            timeout=config["GEOIP_TIMEOUT"],
            enabled=config["GEOIP_ENABLED"],
        )
        recorder = AnalyticsRecorder(
            geolocator,
            sync=config["ANALYTICS_SYNC"],
            max_workers=config["ANALYTICS_WORKERS"],
        )
        return cls(validator=validator, policy=policy, recorder=recorder)

    # ------------------------
    # Content serving
    # ------------------------

    def resolve(self, slug: str) -> Optional[ContentBlock]:
        return self.resolver.resolve(slug)

    def resolve_redirect_target(self, slug: str) -> Optional[RedirectTarget]:
        return self.resolver.resolve_redirect_target(slug)

    def get_tree(self, slug: str) -> Optional[BlockTree]:
        return self.resolver.get_tree(slug)

    def get_tree_by_id(self, block_id: str, *, include_unpublished: bool = True) -> Optional[BlockTree]:
        return self.resolver.get_tree_by_id(block_id, include_unpublished=include_unpublished)

    def track_click(self, block_id: str, metadata: Optional[Mapping[str, Any]] = None):
        return self.recorder.track_click(block_id, metadata)

    # ------------------------
    # Block writes
    # ------------------------

    def create_block(self, spec: Dict[str, Any], *, actor_id: Optional[str] = None) -> ContentBlock:
        return self.repository.create_block(spec, actor_id=actor_id)

    def import_legacy_block(self, spec: Dict[str, Any], *, actor_id: Optional[str] = None) -> ContentBlock:
        return self.repository.import_legacy_block(spec, actor_id=actor_id)

    def update_block(self, block_id: str, changes: Dict[str, Any], *, actor_id: Optional[str] = None) -> ContentBlock:
        return self.repository.update_block(block_id, changes, actor_id=actor_id)

    def update_block_data(
        self,
        block_id: str,
        data: Dict[str, Any],
        metadata: Optional[Dict[str, Any]] = None,
        *,
        actor_id: Optional[str] = None,
    ) -> ContentBlock:
        return self.repository.update_block_data(block_id, data, metadata, actor_id=actor_id)

    def deactivate_block(self, block_id: str) -> ContentBlock:
        return self.repository.deactivate_block(block_id)

    def publish_block(self, block_id: str) -> ContentBlock:
        return self.repository.publish_block(block_id)

    def delete_subtree(self, block_id: str) -> List[str]:
        return self.deleter.delete_subtree(block_id)

    # ------------------------
    # Composition
    # ------------------------

    def add_child(
        self,
        page_id: str,
        block_id: str,
        order: Optional[int] = None,
        layout_hint: Optional[Dict[str, Any]] = None,
    ) -> ContentBlock:
        return self.composer.add_child(page_id, block_id, order, layout_hint)

    def remove_child(self, page_id: str, block_id: str) -> ContentBlock:
        return self.composer.remove_child(page_id, block_id)

    def reorder(self, parent_id: str, ordered_ids: Sequence[str]) -> List[ContentBlock]:
        return self.composer.reorder(parent_id, ordered_ids)

    def get_children(self, parent_id: str) -> List[ContentBlock]:
        return self.composer.get_children(parent_id)

    # ------------------------
    # Slugs
    # ------------------------

    def is_slug_available(self, slug: str) -> bool:
        return self.repository.is_slug_available(slug)

    def generate_slug(self, title: str, renderer_hint: str) -> str:
        return self.generator.generate_unique(title, renderer_hint)

    def suggest_slugs(self, desired: str, renderer: str, *, limit: int = 3) -> List[str]:
        return self.generator.suggest_alternatives(desired, renderer, limit=limit)

    # ------------------------
    # Reporting
    # ------------------------

    def block_analytics(self, block_id: str, *, days: int = 30) -> Dict[str, Any]:
        self.repository.get(block_id)
        return reports.block_analytics(block_id, days=days)

    def clicks_by_country(self, date_range: Optional[reports.DateRange] = None, *, limit: int = 20):
        return reports.clicks_by_country(date_range, limit=limit)

    def export_clicks_csv(self, date_range: Optional[reports.DateRange] = None) -> str:
        return reports.export_csv(date_range)


def init_registry(app) -> BlockRegistry:
    registry = BlockRegistry.from_config(app.config)
    app.extensions[EXTENSION_KEY] = registry
    return registry


def current_registry() -> BlockRegistry:
    return current_app.extensions[EXTENSION_KEY]
