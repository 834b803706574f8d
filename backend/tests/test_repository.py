import pytest
from sqlalchemy import func, select

from linkblocks.domain.exceptions import ConflictError, NotFoundError, ValidationError
from linkblocks.extensions import db
from linkblocks.models import BlockRevision, ContentBlock, Tag


def landing_count():
    return db.session.execute(
        select(func.count(ContentBlock.id)).where(ContentBlock.is_landing_block.is_(True))
    ).scalar()


# ------------------------
# create_block
# ------------------------

def test_create_defaults(make_block):
    block = make_block("hello")

    assert block.id
    assert block.type == "root"
    assert block.parent_id is None
    assert block.status == "published"
    assert block.is_published
    assert block.display_order == 0
    assert block.data["reading_time"] == 1


def test_is_published_flag_maps_to_status(make_block):
    assert make_block("later", is_published=False).status == "draft"


def test_duplicate_published_slug_conflicts(make_block):
    make_block("promo", "article")

    with pytest.raises(ConflictError) as exc:
        make_block("promo", "redirect")

    assert exc.value.code == "slug_taken"
    assert exc.value.details["renderer"] == "article"


def test_reserved_slug_rejected(make_block):
    with pytest.raises(ValidationError) as exc:
        make_block("admin")
    assert exc.value.code == "reserved"


def test_bad_slug_rejected(make_block):
    with pytest.raises(ValidationError) as exc:
        make_block("No Spaces")
    assert exc.value.code == "invalid_format"


@pytest.mark.parametrize("write", ["create", "import"])
def test_trailing_newline_slug_rejected(registry, write):
    spec = {"slug": "promo\n", "renderer": "article", "data": {"title": "Promo", "content": "<p>Sale</p>"}}
    insert = registry.create_block if write == "create" else registry.import_legacy_block

    with pytest.raises(ValidationError) as exc:
        insert(spec)
    assert exc.value.code == "invalid_format"


def test_unknown_renderer_rejected(registry):
    with pytest.raises(ValidationError) as exc:
        registry.create_block({"slug": "video-1", "renderer": "video", "data": {}})
    assert exc.value.code == "unknown_renderer"


def test_unknown_fields_rejected(registry):
    with pytest.raises(ValidationError) as exc:
        registry.create_block({"slug": "abc", "renderer": "page", "type": "child"})
    assert exc.value.code == "unknown_fields"


def test_payload_is_validated(make_block):
    with pytest.raises(ValidationError) as exc:
        make_block("broken", "redirect", data={})
    assert exc.value.code == "invalid_payload"
    assert exc.value.details["errors"][0]["loc"] == ["url"]


def test_missing_parent(make_block):
    with pytest.raises(NotFoundError):
        make_block("orphan", parent_id="does-not-exist")


def test_parent_must_be_a_page(make_block):
    article = make_block("host")

    with pytest.raises(ConflictError) as exc:
        make_block("guest", "text", parent_id=article.id)

    assert exc.value.code == "not_a_page"


def test_child_creation_appends_to_siblings(make_block):
    page = make_block("home", "page")
    first = make_block("one", "text", parent_id=page.id)
    second = make_block("two", "text", parent_id=page.id)

    assert first.type == "child"
    assert (first.display_order, second.display_order) == (1, 2)


def test_failed_create_leaves_nothing_behind(make_block):
    make_block("taken")
    with pytest.raises(ConflictError):
        make_block("taken", "card")
    assert ContentBlock.query.count() == 1


# ------------------------
# deactivate / publish
# ------------------------

def test_deactivate_frees_slug(registry, make_block):
    old = make_block("promo")

    registry.deactivate_block(old.id)
    replacement = make_block("promo", "redirect")

    assert old.status == "archived"
    assert registry.resolve("promo").id == replacement.id


def test_deactivate_is_idempotent(registry, make_block):
    block = make_block("promo")
    registry.deactivate_block(block.id)
    assert registry.deactivate_block(block.id).status == "archived"


def test_deactivate_missing_block(registry):
    with pytest.raises(NotFoundError):
        registry.deactivate_block("missing")


def test_republish_rechecks_slug(registry, make_block):
    old = make_block("promo")
    registry.deactivate_block(old.id)
    make_block("promo", "card")

    with pytest.raises(ConflictError):
        registry.publish_block(old.id)


def test_legacy_import_still_enforces_per_renderer_uniqueness(registry, make_block):
    make_block("promo", "article")

    with pytest.raises(ConflictError):
        registry.import_legacy_block({"slug": "promo", "renderer": "article", "data": {"title": "Again"}})


# ------------------------
# update_block / update_block_data
# ------------------------

def test_update_slug_checks_availability(registry, make_block):
    make_block("taken")
    block = make_block("mine")

    with pytest.raises(ConflictError):
        registry.update_block(block.id, {"slug": "taken"})

    assert registry.update_block(block.id, {"slug": "free-now"}).slug == "free-now"


def test_renderer_is_immutable(registry, make_block):
    block = make_block("mine")

    with pytest.raises(ValidationError) as exc:
        registry.update_block(block.id, {"renderer": "redirect"})

    assert exc.value.code == "renderer_immutable"


def test_tree_fields_are_rejected(registry, make_block):
    block = make_block("mine")

    with pytest.raises(ValidationError) as exc:
        registry.update_block(block.id, {"parent_id": None})

    assert exc.value.code == "structural_field"


def test_noop_update_is_rejected(registry, make_block):
    block = make_block("mine")

    with pytest.raises(ValidationError) as exc:
        registry.update_block(block.id, {"slug": "mine"})

    assert exc.value.code == "no_changes"


def test_data_update_records_revision(registry, make_block):
    block = make_block("mine")

    registry.update_block(block.id, {"data": {"title": "Renamed"}}, actor_id="admin-1")

    revision = BlockRevision.query.filter_by(block_id=block.id).one()
    assert revision.data["title"] == "Hello"
    assert revision.created_by == "admin-1"
    assert block.data["title"] == "Renamed"


def test_illegal_transition(registry, make_block):
    block = make_block("mine")

    with pytest.raises(ValidationError) as exc:
        registry.update_block(block.id, {"status": "draft"})

    assert exc.value.code == "illegal_transition"


def test_unpublishing_archives(registry, make_block):
    block = make_block("mine")
    assert registry.update_block(block.id, {"is_published": False}).status == "archived"


def test_update_block_data_merges(registry, make_block):
    block = make_block("mine", metadata={"seo": {"title": "x"}})

    updated = registry.update_block_data(block.id, {"excerpt": "Short"})

    assert updated.data["title"] == "Hello"
    assert updated.data["excerpt"] == "Short"
    assert updated.meta == {"seo": {"title": "x"}}

    updated = registry.update_block_data(block.id, {}, {"seo": {}})
    assert updated.meta == {"seo": {}}


def test_update_block_data_revalidates(registry, make_block):
    block = make_block("go-now", "redirect")

    with pytest.raises(ValidationError):
        registry.update_block_data(block.id, {"status_code": 303})

    assert db.session.get(ContentBlock, block.id).data["status_code"] == 301


def test_update_block_data_missing(registry):
    with pytest.raises(NotFoundError):
        registry.update_block_data("missing", {"title": "x"})


# ------------------------
# landing block & privacy
# ------------------------

def test_landing_swap_leaves_one(registry, make_block):
    first = make_block("first-home", "page", is_landing_block=True)
    second = make_block("second-home", "page")

    registry.repository.set_landing_block(second.id)

    assert landing_count() == 1
    assert registry.repository.get_landing_block().id == second.id
    assert not db.session.get(ContentBlock, first.id).is_landing_block


def test_landing_on_create_swaps(make_block, registry):
    make_block("first-home", "page", is_landing_block=True)
    second = make_block("second-home", "page", is_landing_block=True)

    assert landing_count() == 1
    assert registry.repository.get_landing_block().id == second.id


def test_landing_is_forced_public(registry, make_block):
    block = make_block("home", "page", is_private=True)

    registry.repository.set_landing_block(block.id)

    assert not block.is_private
    with pytest.raises(ConflictError) as exc:
        registry.repository.set_privacy(block.id, True)
    assert exc.value.code == "landing_private"


def test_landing_must_be_published_root(registry, make_block):
    draft = make_block("draft-home", "page", status="draft")
    page = make_block("home", "page")
    child = make_block("inner", "page", parent_id=page.id)

    with pytest.raises(ConflictError) as exc:
        registry.repository.set_landing_block(draft.id)
    assert exc.value.code == "not_published"

    with pytest.raises(ConflictError) as exc:
        registry.repository.set_landing_block(child.id)
    assert exc.value.code == "landing_child"


def test_deactivating_landing_clears_it(registry, make_block):
    block = make_block("home", "page", is_landing_block=True)
    registry.deactivate_block(block.id)
    assert landing_count() == 0


def test_clear_landing(registry, make_block):
    make_block("home", "page", is_landing_block=True)
    assert registry.repository.clear_landing_block() == 1
    assert registry.repository.get_landing_block() is None


def test_public_blocks(registry, make_block):
    page = make_block("home", "page", display_order=1)
    make_block("secret", is_private=True)
    make_block("draft-one", status="draft")
    make_block("nested", "text", parent_id=page.id)
    visible = make_block("visible", display_order=0)

    assert [b.id for b in registry.repository.get_public_blocks()] == [visible.id, page.id]


def test_toggle_privacy(registry, make_block):
    block = make_block("mine")
    assert registry.repository.toggle_privacy(block.id).is_private
    assert not registry.repository.toggle_privacy(block.id).is_private


# ------------------------
# tags, stats, listing
# ------------------------

def test_set_tags_reuses_by_slug(registry, make_block):
    block = make_block("mine")

    registry.repository.set_tags(block.id, ["News", "news ", "Tech Talk", ""])

    assert sorted(t.slug for t in block.tags) == ["news", "tech-talk"]
    assert Tag.query.count() == 2

    registry.repository.set_tags(block.id, [])
    assert block.tags == []


def test_block_stats(registry, make_block):
    make_block("one")
    make_block("two", "redirect")
    make_block("three", status="draft")

    stats = registry.repository.get_block_stats()

    assert stats["total_blocks"] == 3
    assert stats["published_blocks"] == 2
    assert stats["by_renderer"] == {"article": 1, "redirect": 1}


def test_blocks_by_renderer(registry, make_block):
    make_block("one")
    make_block("two", status="draft")
    make_block("three", "card")

    assert [b.slug for b in registry.repository.get_blocks_by_renderer("article")] == ["one"]
    assert len(registry.repository.get_blocks_by_renderer("article", include_unpublished=True)) == 2


def test_get_block_by_slug_prefers_published(registry, make_block):
    block = make_block("one", status="draft")
    repository = registry.repository

    assert repository.get_block_by_slug("one") is None
    assert repository.get_block_by_slug("one", include_unpublished=True).id == block.id


def test_list_blocks_cursor(registry, make_block):
    for slug in ("aaa", "bbb", "ccc"):
        make_block(slug)

    first_page, meta = registry.repository.list_blocks(limit=2)
    assert len(first_page) == 2
    assert meta["has_more"] is True

    second_page, meta = registry.repository.list_blocks(limit=2, cursor=meta["next_cursor"])
    assert len(second_page) == 1
    assert meta["has_more"] is False
    assert {b.slug for b in first_page + second_page} == {"aaa", "bbb", "ccc"}


def test_slug_availability(registry, make_block):
    make_block("taken")
    assert not registry.is_slug_available("taken")
    assert not registry.is_slug_available("admin")
    assert registry.is_slug_available("free-slug")
