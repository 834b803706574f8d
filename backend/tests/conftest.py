import pytest
from flask_jwt_extended import create_access_token

from linkblocks import create_app
from linkblocks.application.registry import current_registry
from linkblocks.extensions import db

SAMPLE_DATA = {
    "redirect": {"url": "https://example.com/landing"},
    "article": {"title": "Hello", "content": "<p>Some words here</p>"},
    "image": {"url": "https://cdn.example.com/a.png", "alt": "A"},
    "card": {"title": "Card"},
    "gallery": {"images": []},
    "page": {"title": "Page"},
    "heading": {"text": "Heading"},
    "text": {"content": "plain"},
}


@pytest.fixture
def app():
    app = create_app("testing")

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def registry(app):
    return current_registry()


@pytest.fixture
def admin_headers(app):
    token = create_access_token(identity="admin-1", additional_claims={"role": "admin"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def editor_headers(app):
    token = create_access_token(identity="editor-1", additional_claims={"role": "editor"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_block(registry):
    def _make(slug, renderer="article", **spec):
        spec.setdefault("data", dict(SAMPLE_DATA[renderer]))
        return registry.create_block({"slug": slug, "renderer": renderer, **spec})
    return _make
