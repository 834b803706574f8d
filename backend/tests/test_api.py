from linkblocks.models import Click


def create(client, headers, **spec):
    return client.post("/api/v1/admin/blocks", json=spec, headers=headers)


# ------------------------
# Public surface
# ------------------------

def test_health(client):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.get_json()["status"] == "ok"


def test_root_redirect_tracks_click(client, make_block):
    block = make_block("sale", "redirect", data={"url": "https://shop.example.com", "status_code": 302})

    response = client.get("/sale", headers={"Referer": "https://news.example.com"})

    assert response.status_code == 302
    assert response.headers["Location"] == "https://shop.example.com"
    click = Click.query.one()
    assert click.block_id == block.id
    assert click.referrer == "https://news.example.com"


def test_root_serves_block_tree(client, make_block):
    page = make_block("about-me", "page")
    make_block("bio", "text", parent_id=page.id)

    response = client.get("/about-me")

    assert response.status_code == 200
    body = response.get_json()
    assert body["renderer"] == "page"
    assert [child["slug"] for child in body["children"]] == ["bio"]
    assert "status" not in body


def test_root_unknown_slug(client):
    response = client.get("/nothing-here")
    assert response.status_code == 404
    assert response.get_json()["error"] == "NotFound"
    assert Click.query.count() == 0


def test_children_of_archived_page_are_not_served(client, registry, make_block):
    page = make_block("home", "page")
    make_block("secret-link", "redirect", parent_id=page.id, data={"url": "https://internal.example.com"})
    make_block("bio", "text", parent_id=page.id)

    registry.deactivate_block(page.id)

    assert client.get("/secret-link").status_code == 404
    assert client.get("/bio").status_code == 404
    assert client.get("/api/v1/resolve/secret-link").status_code == 404
    assert Click.query.count() == 0


def test_resolve_endpoint(client, make_block, registry):
    make_block("promo", "article")
    registry.import_legacy_block({"slug": "promo", "renderer": "redirect", "data": {"url": "https://a.example"}})

    response = client.get("/api/v1/resolve/promo")

    assert response.status_code == 200
    assert response.get_json()["renderer"] == "redirect"
    assert client.get("/api/v1/resolve/missing").status_code == 404


def test_landing_and_public_index(client, make_block):
    assert client.get("/api/v1/landing").status_code == 404

    make_block("home", "page", is_landing_block=True)
    make_block("secret", is_private=True)

    assert client.get("/api/v1/landing").get_json()["slug"] == "home"
    slugs = [item["slug"] for item in client.get("/api/v1/public-blocks").get_json()["items"]]
    assert slugs == ["home"]


def test_track_endpoint(client, make_block):
    block = make_block("promo")

    response = client.post(
        f"/api/v1/blocks/{block.id}/track",
        json={"referrer": "https://ref.example", "country": "CA"},
    )
    ignored = client.post("/api/v1/blocks/missing/track", json={})

    assert response.status_code == 202
    assert ignored.status_code == 202
    assert Click.query.one().country == "CA"


# ------------------------
# Auth
# ------------------------

def test_admin_requires_token(client):
    assert client.get("/api/v1/admin/blocks").status_code == 401


def test_admin_requires_admin_role(client, editor_headers):
    response = client.get("/api/v1/admin/blocks", headers=editor_headers)
    assert response.status_code == 403


# ------------------------
# Admin blocks
# ------------------------

def test_create_and_list(client, admin_headers):
    response = create(client, admin_headers, slug="hello", renderer="article", data={"title": "Hello"})

    assert response.status_code == 201
    body = response.get_json()
    assert body["status"] == "published"
    assert body["type"] == "root"

    listing = client.get("/api/v1/admin/blocks?renderer=article", headers=admin_headers).get_json()
    assert [item["slug"] for item in listing["items"]] == ["hello"]
    assert listing["pagination"] == {"has_more": False, "next_cursor": None}


def test_create_generates_missing_slug(client, admin_headers, make_block):
    make_block("my-first-post")

    response = create(client, admin_headers, renderer="article", data={"title": "My First Post"})

    assert response.status_code == 201
    assert response.get_json()["slug"] == "my-first-post-1"


def test_create_conflict_and_reserved(client, admin_headers, make_block):
    make_block("promo")

    conflict = create(client, admin_headers, slug="promo", renderer="redirect", data={"url": "https://a.example"})
    reserved = create(client, admin_headers, slug="admin", renderer="page")

    assert conflict.status_code == 409
    assert conflict.get_json()["error"] == "ConflictError"
    assert conflict.get_json()["code"] == "slug_taken"
    assert reserved.status_code == 400
    assert reserved.get_json()["code"] == "reserved"


def test_get_update_and_delete(client, admin_headers, make_block):
    page = make_block("home", "page")
    make_block("draft-child", "text", parent_id=page.id, status="draft")

    tree = client.get(f"/api/v1/admin/blocks/{page.id}", headers=admin_headers).get_json()
    assert [child["status"] for child in tree["children"]] == ["draft"]

    patched = client.patch(
        f"/api/v1/admin/blocks/{page.id}",
        json={"data": {"title": "Home"}},
        headers=admin_headers,
    )
    assert patched.status_code == 200
    assert patched.get_json()["data"]["title"] == "Home"

    deleted = client.delete(f"/api/v1/admin/blocks/{page.id}", headers=admin_headers)
    assert deleted.status_code == 200
    assert len(deleted.get_json()["deleted"]) == 2

    missing = client.get(f"/api/v1/admin/blocks/{page.id}", headers=admin_headers)
    assert missing.status_code == 404
    assert missing.get_json()["error"] == "NotFoundError"


def test_deactivate_and_publish(client, admin_headers, make_block):
    block = make_block("promo")

    archived = client.post(f"/api/v1/admin/blocks/{block.id}/deactivate", headers=admin_headers)
    assert archived.get_json()["status"] == "archived"
    assert client.get("/api/v1/resolve/promo").status_code == 404

    published = client.post(f"/api/v1/admin/blocks/{block.id}/publish", headers=admin_headers)
    assert published.get_json()["status"] == "published"


def test_children_endpoints(client, admin_headers, make_block):
    page = make_block("home", "page")
    a = make_block("aaa", "text")
    b = make_block("bbb", "text")

    for block in (a, b):
        response = client.post(
            f"/api/v1/admin/blocks/{page.id}/children",
            json={"block_id": block.id},
            headers=admin_headers,
        )
        assert response.status_code == 201

    again = client.post(
        f"/api/v1/admin/blocks/{page.id}/children",
        json={"block_id": a.id},
        headers=admin_headers,
    )
    assert again.status_code == 409

    reordered = client.put(
        f"/api/v1/admin/blocks/{page.id}/children/order",
        json={"ordered_ids": [b.id, a.id]},
        headers=admin_headers,
    )
    assert [item["id"] for item in reordered.get_json()["items"]] == [b.id, a.id]

    removed = client.delete(f"/api/v1/admin/blocks/{page.id}/children/{a.id}", headers=admin_headers)
    assert removed.get_json()["type"] == "root"

    children = client.get(f"/api/v1/admin/blocks/{page.id}/children", headers=admin_headers).get_json()
    assert [item["id"] for item in children["items"]] == [b.id]



def test_non_numeric_order_is_a_bad_request(client, admin_headers, make_block):
    page = make_block("home", "page")
    block = make_block("aaa", "text")

    attach = client.post(
        f"/api/v1/admin/blocks/{page.id}/children",
        json={"block_id": block.id, "order": "first"},
        headers=admin_headers,
    )
    update = client.patch(
        f"/api/v1/admin/blocks/{block.id}",
        json={"display_order": "last"},
        headers=admin_headers,
    )
    create = client.post(
        "/api/v1/admin/blocks",
        json={"slug": "new-one", "renderer": "text", "data": {"content": "Hi"}, "display_order": "x"},
        headers=admin_headers,
    )

    for response in (attach, update, create):
        assert response.status_code == 400
        assert response.get_json()["code"] == "invalid_order"


def test_landing_admin(client, admin_headers, make_block):
    block = make_block("home", "page")

    response = client.put("/api/v1/admin/landing-block", json={"block_id": block.id}, headers=admin_headers)
    assert response.get_json()["landing_block"]["is_landing_block"] is True

    current = client.get("/api/v1/admin/landing-block", headers=admin_headers).get_json()
    assert current["landing_block"]["id"] == block.id

    cleared = client.delete("/api/v1/admin/landing-block", headers=admin_headers)
    assert cleared.get_json() == {"cleared": 1}


def test_privacy_and_tags(client, admin_headers, make_block):
    block = make_block("promo")

    private = client.put(f"/api/v1/admin/blocks/{block.id}/privacy", json={"is_private": True}, headers=admin_headers)
    assert private.get_json()["is_private"] is True

    toggled = client.put(f"/api/v1/admin/blocks/{block.id}/privacy", headers=admin_headers)
    assert toggled.get_json()["is_private"] is False

    tagged = client.put(f"/api/v1/admin/blocks/{block.id}/tags", json={"tags": ["Sale"]}, headers=admin_headers)
    assert [tag["slug"] for tag in tagged.get_json()["tags"]] == ["sale"]

    bad = client.put(f"/api/v1/admin/blocks/{block.id}/tags", json={"tags": "Sale"}, headers=admin_headers)
    assert bad.status_code == 400


def test_slug_tools(client, admin_headers, make_block):
    make_block("promo")

    free = client.get("/api/v1/admin/slugs/check?slug=fresh", headers=admin_headers).get_json()
    taken = client.get("/api/v1/admin/slugs/check?slug=promo&renderer=card", headers=admin_headers).get_json()
    reserved = client.get("/api/v1/admin/slugs/check?slug=admin", headers=admin_headers).get_json()

    assert free["available"] is True
    assert taken["available"] is False
    assert taken["suggestions"][0] == "card-promo"
    assert reserved["reason"] == "reserved"

    generated = client.post(
        "/api/v1/admin/slugs/generate",
        json={"title": "Promo", "renderer": "card"},
        headers=admin_headers,
    )
    assert generated.get_json()["slug"] == "promo-1"


def test_stats_and_analytics(client, admin_headers, make_block):
    block = make_block("promo")
    client.get("/promo")
    client.post(f"/api/v1/blocks/{block.id}/track", json={"country": "US"})

    stats = client.get("/api/v1/admin/stats", headers=admin_headers).get_json()
    assert stats["published_blocks"] == 1

    analytics = client.get(f"/api/v1/admin/blocks/{block.id}/analytics", headers=admin_headers).get_json()
    assert analytics["total_clicks"] == 2

    countries = client.get("/api/v1/admin/analytics/countries", headers=admin_headers).get_json()
    assert countries["items"] == [{"country": "US", "name": "United States", "clicks": 1}]

    ranged = client.get(
        "/api/v1/admin/analytics/countries?start=2000-01-01&end=2000-01-02",
        headers=admin_headers,
    ).get_json()
    assert ranged["items"] == []

    export = client.get("/api/v1/admin/analytics/export", headers=admin_headers)
    assert export.mimetype == "text/csv"
    assert export.get_data(as_text=True).startswith("Timestamp,Block Slug")


def test_bad_date_range(client, admin_headers):
    response = client.get("/api/v1/admin/analytics/countries?start=2024-01-01", headers=admin_headers)
    assert response.status_code == 400
    assert response.get_json()["code"] == "invalid_date"


def test_openapi_is_served(client):
    response = client.get("/openapi/blocks.yaml")
    assert response.status_code == 200
    assert b"Link Blocks API" in response.data
