from flask import Blueprint, jsonify, redirect

from linkblocks.application.registry import current_registry
from linkblocks.normalizers.block import normalize_tree
from linkblocks.utils.request_meta import click_metadata

redirects_bp = Blueprint("redirects", __name__)


@redirects_bp.route("/<slug>", methods=["GET"])
def serve_slug(slug):
    registry = current_registry()

    # Shortener fast path: no ORM hydration
    target = registry.resolve_redirect_target(slug)
    if target is not None:
        registry.track_click(target.block_id, click_metadata())
        return redirect(target.url, code=target.status_code)

    tree = registry.get_tree(slug)
    if tree is None:
        return jsonify({"error": "NotFound", "message": f"No block answers for /{slug}"}), 404

    registry.track_click(tree.block.id, click_metadata())
    return jsonify(normalize_tree(tree))
