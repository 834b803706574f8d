from flask import jsonify, request

from linkblocks.application.registry import current_registry
from linkblocks.normalizers.block import normalize_block, normalize_tree
from linkblocks.utils.request_meta import click_metadata
from . import v1_bp


def _not_found(message):
    return jsonify({"error": "NotFound", "message": message}), 404


@v1_bp.route("/resolve/<slug>", methods=["GET"])
def resolve_slug(slug):
    block = current_registry().resolve(slug)
    if block is None:
        return _not_found(f"No block answers for /{slug}")

    return jsonify(normalize_block(block))


@v1_bp.route("/tree/<slug>", methods=["GET"])
def get_tree(slug):
    tree = current_registry().get_tree(slug)
    if tree is None:
        return _not_found(f"No block answers for /{slug}")

    return jsonify(normalize_tree(tree))


@v1_bp.route("/landing", methods=["GET"])
def get_landing():
    registry = current_registry()
    landing = registry.repository.get_landing_block()
    if landing is None:
        return _not_found("No landing block configured")

    tree = registry.resolver.build_tree(landing, include_unpublished=False)
    return jsonify(normalize_tree(tree))


@v1_bp.route("/public-blocks", methods=["GET"])
def list_public_blocks():
    blocks = current_registry().repository.get_public_blocks()
    return jsonify({"items": [normalize_block(b) for b in blocks]})


@v1_bp.route("/blocks/<block_id>/track", methods=["POST"])
def track_block(block_id):
    """Client-side beacon. Always answers 202; unknown or unpublished ids are ignored."""
    data = request.get_json(silent=True) or {}
    extra = {
        "referrer": data.get("referrer"),
        "user_agent": data.get("userAgent") or data.get("user_agent"),
        "country": data.get("country"),
    }
    registry = current_registry()
    if registry.repository.get_block_by_id(block_id) is not None:
        registry.track_click(block_id, click_metadata(extra))

    return jsonify({"status": "accepted"}), 202
