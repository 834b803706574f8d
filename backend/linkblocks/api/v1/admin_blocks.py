# linkblocks/api/v1/admin_blocks.py
from flask import jsonify, request
from flask_jwt_extended import get_jwt_identity, jwt_required

from linkblocks.application.registry import current_registry
from linkblocks.domain.exceptions import NotFoundError, ValidationError
from linkblocks.normalizers.block import normalize_block, normalize_tree
from linkblocks.normalizers.pagination import normalize_pagination
from linkblocks.utils.decorators import roles_required
from . import v1_bp


def _admin_block(block):
    return normalize_block(block, admin=True)


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object", code="invalid_body")
    return data


# ------------------------
# Blocks
# ------------------------

@v1_bp.route("/admin/blocks", methods=["GET"])
@jwt_required()
@roles_required("admin")
def list_blocks():
    items, cursor = current_registry().repository.list_blocks(
        renderer=request.args.get("renderer"),
        block_type=request.args.get("type"),
        status=request.args.get("status"),
        limit=request.args.get("limit", 20, type=int),
        cursor=request.args.get("cursor"),
    )
    return jsonify(normalize_pagination(items, _admin_block, cursor=cursor))


@v1_bp.route("/admin/blocks", methods=["POST"])
@jwt_required()
@roles_required("admin")
def create_block():
    registry = current_registry()
    spec = _json_body()

    # Untitled slugs are derived from the payload title
    if not spec.get("slug") and spec.get("renderer"):
        title = (spec.get("data") or {}).get("title") or ""
        spec["slug"] = registry.generate_slug(title, spec["renderer"])

    block = registry.create_block(spec, actor_id=get_jwt_identity())

    return jsonify(_admin_block(block)), 201


@v1_bp.route("/admin/blocks/<block_id>", methods=["GET"])
@jwt_required()
@roles_required("admin")
def get_block(block_id):
    tree = current_registry().get_tree_by_id(block_id, include_unpublished=True)
    if tree is None:
        raise NotFoundError(f"Block {block_id} not found", details={"block_id": block_id})

    return jsonify(normalize_tree(tree, admin=True))


@v1_bp.route("/admin/blocks/<block_id>", methods=["PATCH"])
@jwt_required()
@roles_required("admin")
def update_block(block_id):
    block = current_registry().update_block(block_id, _json_body(), actor_id=get_jwt_identity())
    return jsonify(_admin_block(block))


@v1_bp.route("/admin/blocks/<block_id>/data", methods=["PUT"])
@jwt_required()
@roles_required("admin")
def update_block_data(block_id):
    body = _json_body()
    block = current_registry().update_block_data(
        block_id,
        body.get("data") or {},
        body.get("metadata"),
        actor_id=get_jwt_identity(),
    )
    return jsonify(_admin_block(block))


@v1_bp.route("/admin/blocks/<block_id>", methods=["DELETE"])
@jwt_required()
@roles_required("admin")
def delete_block(block_id):
    deleted = current_registry().delete_subtree(block_id)
    return jsonify({"deleted": deleted})


@v1_bp.route("/admin/blocks/<block_id>/deactivate", methods=["POST"])
@jwt_required()
@roles_required("admin")
def deactivate_block(block_id):
    block = current_registry().deactivate_block(block_id)
    return jsonify(_admin_block(block))


@v1_bp.route("/admin/blocks/<block_id>/publish", methods=["POST"])
@jwt_required()
@roles_required("admin")
def publish_block(block_id):
    block = current_registry().publish_block(block_id)
    return jsonify(_admin_block(block))


@v1_bp.route("/admin/blocks/<block_id>/privacy", methods=["PUT"])
@jwt_required()
@roles_required("admin")
def set_privacy(block_id):
    repository = current_registry().repository
    body = _json_body()

    if "is_private" in body:
        block = repository.set_privacy(block_id, bool(body["is_private"]))
    else:
        block = repository.toggle_privacy(block_id)

    return jsonify(_admin_block(block))


@v1_bp.route("/admin/blocks/<block_id>/tags", methods=["PUT"])
@jwt_required()
@roles_required("admin")
def set_tags(block_id):
    names = _json_body().get("tags")
    if not isinstance(names, list):
        raise ValidationError("tags must be a list of names", code="invalid_tags")

    block = current_registry().repository.set_tags(block_id, names)
    return jsonify(_admin_block(block))


# ------------------------
# Composition
# ------------------------

@v1_bp.route("/admin/blocks/<page_id>/children", methods=["GET"])
@jwt_required()
@roles_required("admin")
def list_children(page_id):
    children = current_registry().get_children(page_id)
    return jsonify({"items": [_admin_block(c) for c in children]})


@v1_bp.route("/admin/blocks/<page_id>/children", methods=["POST"])
@jwt_required()
@roles_required("admin")
def add_child(page_id):
    body = _json_body()
    if not body.get("block_id"):
        raise ValidationError("block_id is required", code="missing_fields")

    block = current_registry().add_child(
        page_id,
        body["block_id"],
        body.get("order"),
        body.get("layout"),
    )
    return jsonify(_admin_block(block)), 201


@v1_bp.route("/admin/blocks/<page_id>/children/<child_id>", methods=["DELETE"])
@jwt_required()
@roles_required("admin")
def remove_child(page_id, child_id):
    block = current_registry().remove_child(page_id, child_id)
    return jsonify(_admin_block(block))


@v1_bp.route("/admin/blocks/<page_id>/children/order", methods=["PUT"])
@jwt_required()
@roles_required("admin")
def reorder_children(page_id):
    ordered_ids = _json_body().get("ordered_ids")
    if not isinstance(ordered_ids, list):
        raise ValidationError("ordered_ids must be a list", code="invalid_body")

    sequence = current_registry().reorder(page_id, ordered_ids)
    return jsonify({"items": [_admin_block(c) for c in sequence]})


# ------------------------
# Landing block
# ------------------------

@v1_bp.route("/admin/landing-block", methods=["GET"])
@jwt_required()
@roles_required("admin")
def get_landing_block():
    landing = current_registry().repository.get_landing_block()
    return jsonify({"landing_block": _admin_block(landing) if landing else None})


@v1_bp.route("/admin/landing-block", methods=["PUT"])
@jwt_required()
@roles_required("admin")
def set_landing_block():
    block_id = _json_body().get("block_id")
    if not block_id:
        raise ValidationError("block_id is required", code="missing_fields")

    block = current_registry().repository.set_landing_block(block_id)
    return jsonify({"landing_block": _admin_block(block)})


@v1_bp.route("/admin/landing-block", methods=["DELETE"])
@jwt_required()
@roles_required("admin")
def clear_landing_block():
    cleared = current_registry().repository.clear_landing_block()
    return jsonify({"cleared": cleared})


# ------------------------
# Slugs & stats
# ------------------------

@v1_bp.route("/admin/slugs/check", methods=["GET"])
@jwt_required()
@roles_required("admin")
def check_slug():
    registry = current_registry()
    slug = request.args.get("slug", "")
    renderer = request.args.get("renderer", "page")

    try:
        registry.validator.validate(slug)
    except ValidationError as exc:
        return jsonify({"slug": slug, "available": False, "reason": exc.code, "suggestions": []})

    if registry.is_slug_available(slug):
        return jsonify({"slug": slug, "available": True, "reason": None, "suggestions": []})

    return jsonify({
        "slug": slug,
        "available": False,
        "reason": "taken",
        "suggestions": registry.suggest_slugs(slug, renderer),
    })


@v1_bp.route("/admin/slugs/generate", methods=["POST"])
@jwt_required()
@roles_required("admin")
def generate_slug():
    body = _json_body()
    renderer = body.get("renderer")
    if not renderer:
        raise ValidationError("renderer is required", code="missing_fields")

    slug = current_registry().generate_slug(body.get("title") or "", renderer)
    return jsonify({"slug": slug})


@v1_bp.route("/admin/stats", methods=["GET"])
@jwt_required()
@roles_required("admin")
def block_stats():
    return jsonify(current_registry().repository.get_block_stats())
