import io

import pytest

import db

import app as app_module
from services import layout_settings


@pytest.fixture
def client(monkeypatch, tmp_path):
    monkeypatch.setattr(db, "DB_PATH", tmp_path / "app.db")
    layout_settings.invalidate_layout_assumptions_cache()
    yield app_module.app.test_client()
    layout_settings.invalidate_layout_assumptions_cache()


def test_healthz(client):
    response = client.get("/healthz")

    assert response.status_code == 200
    assert response.get_json() == {"status": "ok"}


def test_layout_returns_sections_and_totals(client):
    response = client.post(
        "/api/layout",
        json={
            "items": [
                {"product_id": "V6", "name": "Beam 6.00 m", "quantity": 10, "length": 6.0, "weight": 60},
                {"product_id": "V3", "name": "Beam 3.00 m", "quantity": 40, "length": 3.0, "weight": 30},
            ],
            "vehicle": {"kind": "single", "section_lengths": [7.0]},
        },
    )

    assert response.status_code == 200
    payload = response.get_json()
    assert payload["vehicle"]["kind"] == "single"
    assert len(payload["sections"]) == 1
    assert payload["unplaceable"] == []
    assert payload["totals"]["placed_units"] == 50
    assert payload["totals"]["total_weight_kg"] == 1800.0
    grid = payload["sections"][0]["grid"]
    assert grid["1-1-1"][0]["product_id"] == "V6"


def test_layout_rejects_invalid_items(client):
    response = client.post(
        "/api/layout",
        json={
            "items": [{"product_id": "", "quantity": "many"}],
            "vehicle": {"kind": "single", "section_lengths": [7.0]},
        },
    )

    assert response.status_code == 400
    payload = response.get_json()
    assert "items[0].product_id" in payload["errors"]
    assert "items[0].quantity" in payload["errors"]


def test_layout_requires_json_object(client):
    response = client.post("/api/layout", data="not json", content_type="text/plain")

    assert response.status_code == 400
    assert "error" in response.get_json()


def test_items_upload_returns_parsed_rows(client):
    csv_body = "codigo,cantidad,largo,peso\nV580,25,5.80,48\nBAD,,3.0,10\n"

    response = client.post(
        "/api/items/upload",
        data={"file": (io.BytesIO(csv_body.encode("utf-8")), "items.csv")},
        content_type="multipart/form-data",
    )

    assert response.status_code == 200
    payload = response.get_json()
    assert payload["successfully_parsed"] == 1
    assert payload["items"][0]["product_id"] == "V580"
    assert payload["rejected_rows"][0]["product_id"] == "BAD"


def test_items_upload_without_valid_rows_is_rejected(client):
    csv_body = "codigo,cantidad\nA,0\n"

    response = client.post(
        "/api/items/upload",
        data={"file": (io.BytesIO(csv_body.encode("utf-8")), "items.csv")},
        content_type="multipart/form-data",
    )

    assert response.status_code == 400
    payload = response.get_json()
    assert "No valid item rows" in payload["error"]
    assert payload["total_rows"] == 1


def test_items_upload_with_missing_columns_is_rejected(client):
    response = client.post(
        "/api/items/upload",
        data={"file": (io.BytesIO(b"name\nBeam\n"), "items.csv")},
        content_type="multipart/form-data",
    )

    assert response.status_code == 400
    assert "Missing required columns" in response.get_json()["error"]


def test_layout_settings_round_trip(client):
    response = client.get("/api/settings/layout")
    assert response.status_code == 200
    assert response.get_json()["settings"] == layout_settings.default_layout_assumptions()

    response = client.post("/api/settings/layout", json={"package_size_small": 24})
    assert response.status_code == 200
    assert response.get_json()["settings"]["package_size_small"] == 24

    response = client.get("/api/settings/layout")
    settings = response.get_json()["settings"]
    assert settings["package_size_small"] == 24
    assert settings["package_size_large"] == 10
