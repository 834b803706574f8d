def _iso(value):
    return value.isoformat() if value else None


def normalize_tag(tag):
    return {
        "id": tag.id,
        "name": tag.name,
        "slug": tag.slug,
        "color": tag.color,
    }


def normalize_block(block, admin=False):
    base = {
        "id": block.id,
        "slug": block.slug,
        "type": block.type,
        "renderer": block.renderer,
        "parent_id": block.parent_id,
        "display_order": block.display_order,
        "data": block.data or {},
        "metadata": block.meta or {},
        "tags": [normalize_tag(t) for t in block.tags],
    }

    if admin:
        base["status"] = block.status
        base["is_published"] = block.is_published
        base["is_private"] = block.is_private
        base["is_landing_block"] = block.is_landing_block
        base["created_at"] = _iso(block.created_at)
        base["updated_at"] = _iso(block.updated_at)

    return base


def normalize_tree(tree, admin=False):
    node = normalize_block(tree.block, admin=admin)
    node["children"] = [normalize_tree(child, admin=admin) for child in tree.children]
    return node
