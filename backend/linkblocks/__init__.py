import json
import logging
import os

import click
from flask import Flask, send_file, current_app
from flask.cli import AppGroup
from flask_swagger_ui import get_swaggerui_blueprint

from .config import config_by_name
from .extensions import db, migrate, jwt
from .api.v1 import v1_bp
from .api.redirects import redirects_bp
from .application.registry import current_registry, init_registry
from .errors import register_error_handlers

logger = logging.getLogger(__name__)

blocks_cli = AppGroup("blocks", help="Content block maintenance.")


@blocks_cli.command("import-legacy")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
def import_legacy(path):
    """Load blocks exported from the per-type legacy tables (JSON list)."""
    with open(path, encoding="utf-8") as fh:
        rows = json.load(fh)

    registry = current_registry()
    for row in rows:
        block = registry.import_legacy_block(row)
        click.echo(f"{block.renderer:<10} {block.slug} -> {block.id}")

    click.echo(f"Imported {len(rows)} blocks")


def create_app(config_name: str = "development") -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    # -------------------------------------------------
    # Extensions
    # -------------------------------------------------
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)

    init_registry(app)

    # -------------------------------------------------
    # API Blueprints
    # -------------------------------------------------
    app.register_blueprint(v1_bp, url_prefix="/api/v1")
    register_error_handlers(app)
    app.cli.add_command(blocks_cli)

    # -------------------------------------------------
    # Serve OpenAPI YAML
    # -------------------------------------------------
    @app.route("/openapi/blocks.yaml", methods=["GET"], endpoint="openapi_blocks")
    def serve_openapi():
        spec_path = os.path.join(
            current_app.root_path,
            "api",
            "v1",
            "blocks_openapi.yaml",
        )

        if not os.path.exists(spec_path):
            raise FileNotFoundError("blocks_openapi.yaml not found")

        return send_file(
            spec_path,
            mimetype="application/yaml",
            as_attachment=False,
        )

    # -------------------------------------------------
    # Swagger UI
    # -------------------------------------------------
    SWAGGER_URL = "/swagger"
    API_URL = "/openapi/blocks.yaml"

    swaggerui_blueprint = get_swaggerui_blueprint(
        SWAGGER_URL,
        API_URL,
        config={
            "app_name": "Link Blocks API",
            "deepLinking": True,
            "persistAuthorization": True,
        },
    )

    app.register_blueprint(swaggerui_blueprint, url_prefix=SWAGGER_URL)

    # Catch-all slug route goes last
    app.register_blueprint(redirects_bp)

    logger.debug("linkblocks app created with %s config", config_name)
    return app
