"""HTTP API tests (app lifespan + SQLite)."""
import pytest

pytestmark = pytest.mark.api

GTIN_FILE = (
    "gtin_code,gtin_type,notes\n"
    "8437012345678,EAN,Lot GS1\n"
    "012345678905,UPC,\n"
    "123,EAN,bad\n"
)


def _import(client, text=GTIN_FILE, headers=None):
    preview = client.post(
        "/gtin-pool/import/preview",
        files={"file": ("codes.csv", text.encode("utf-8"), "text/csv")},
        headers=headers,
    )
    assert preview.status_code == 200
    commit = client.post("/gtin-pool/import/commit", json=preview.json(), headers=headers)
    assert commit.status_code == 200
    return preview.json(), commit.json()


def _entry_id(client, code, headers=None):
    entries = client.get("/gtin-pool", params={"search": code}, headers=headers).json()
    return next(e["id"] for e in entries if e["code"] == code)


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_import_preview_and_commit(client):
    preview, result = _import(client)

    assert preview["layout"] == "gtin_columns"
    assert preview["has_header"] is True
    assert preview["valid"] == 2
    assert preview["invalid"] == 1
    assert [r["row_number"] for r in preview["rows"]] == [2, 3, 4]
    assert sorted(result["inserted"]) == ["012345678905", "8437012345678"]
    assert result["invalid"] == 1

    entries = client.get("/gtin-pool").json()
    assert {e["code"] for e in entries} == {"012345678905", "8437012345678"}
    assert all(e["status"] == "available" for e in entries)

    stats = client.get("/gtin-pool/stats").json()
    assert stats == {"total": 2, "available": 2, "assigned": 0, "archived": 0, "low_stock": True}


def test_preview_text_flags_conflicts(client):
    _import(client)

    response = client.post("/gtin-pool/import/preview-text", content=b"UPC,EAN\n,8437012345678\n")

    body = response.json()
    assert response.status_code == 200
    assert body["layout"] == "upc_ean_columns"
    assert body["conflicts"] == ["8437012345678"]


def test_preview_rejects_non_utf8(client):
    response = client.post("/gtin-pool/import/preview-text", content=b"\xff\xfe\x00g")

    assert response.status_code == 422
    assert response.json()["error"] == "validation_error"


def test_assign_through_identifiers(client):
    _import(client)
    entry_id = _entry_id(client, "8437012345678")

    response = client.post("/projects/proj-1/identifiers/assign", json={"entry_id": entry_id})

    view = response.json()
    assert response.status_code == 200
    assert view["record"]["gtin_code"] == "8437012345678"
    assert view["sourced_from_pool"] is True
    assert view["can_release"] is True

    taken = client.post("/projects/proj-2/identifiers/assign", json={"entry_id": entry_id})
    assert taken.status_code == 409
    assert taken.json()["error"] == "already_assigned"

    available = client.get("/gtin-pool/available").json()
    assert [e["code"] for e in available] == ["012345678905"]


def test_release_through_identifiers(client):
    _import(client)
    entry_id = _entry_id(client, "8437012345678")
    client.post("/projects/proj-1/identifiers/assign", json={"entry_id": entry_id})

    response = client.post("/projects/proj-1/identifiers/release")

    view = response.json()
    assert response.status_code == 200
    assert view["record"]["gtin_code"] == "8437012345678"
    assert view["can_release"] is False

    again = client.post("/projects/proj-1/identifiers/release", json={"entry_id": entry_id})
    assert again.status_code == 409
    assert again.json()["error"] == "not_assigned"


def test_archive_is_terminal(client):
    _import(client)
    entry_id = _entry_id(client, "012345678905")

    first = client.post(f"/gtin-pool/{entry_id}/archive")
    second = client.post(f"/gtin-pool/{entry_id}/archive")
    assign = client.post("/projects/proj-1/identifiers/assign", json={"entry_id": entry_id})

    assert first.status_code == second.status_code == 200
    assert second.json()["status"] == "archived"
    assert assign.status_code == 409
    assert assign.json()["error"] == "entry_archived"

    released = client.post(f"/gtin-pool/{entry_id}/release")
    assert released.status_code == 409


def test_unknown_entry(client):
    response = client.post("/gtin-pool/999/archive")

    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


def test_manual_identifiers(client):
    bad = client.put("/projects/proj-1/identifiers", json={"gtin_type": "GTIN_EXEMPT", "exemption_reason": ""})
    assert bad.status_code == 422

    ok = client.put(
        "/projects/proj-1/identifiers",
        json={"gtin_type": "GTIN_EXEMPT", "gtin_code": "8437012345678", "exemption_reason": "Handmade", "asin": "B0TEST"},
    )
    view = ok.json()
    assert ok.status_code == 200
    assert view["record"]["gtin_code"] is None
    assert view["gtin_ready"] is True

    loaded = client.get("/projects/proj-1/identifiers").json()
    assert loaded["record"]["asin"] == "B0TEST"


def test_owner_scopes_are_isolated(client):
    acme = {"X-Owner-Scope": "acme"}
    other = {"X-Owner-Scope": "other-co"}
    _import(client, headers=acme)
    entry_id = _entry_id(client, "8437012345678", headers=acme)

    assert client.get("/gtin-pool", headers=other).json() == []
    assert client.post(f"/gtin-pool/{entry_id}/archive", headers=other).status_code == 404

    # same codes can be imported into another scope
    _, result = _import(client, headers=other)
    assert sorted(result["inserted"]) == ["012345678905", "8437012345678"]
