"""Tests for the HTTP API."""

import inspect
import json

import pytest
from fastapi.testclient import TestClient

from conftest import read_deck
from slidesmith.api.v1.templates import convert_placeholders, describe_template, list_templates
from slidesmith.main import create_app


@pytest.fixture
def client() -> TestClient:
    return TestClient(create_app())


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
        assert response.headers["x-request-id"]

    def test_request_id_propagated(self, client):
        response = client.get("/health", headers={"x-request-id": "abc"})
        assert response.headers["x-request-id"] == "abc"


class TestTemplates:
    def test_list(self, client, make_deck):
        make_deck("pitch_single", [[{"text": "{{name}}"}]])
        make_deck("compare_double", [[{"text": "{{item1Name}}"}]])

        response = client.get("/v1/templates")
        assert response.status_code == 200
        assert response.json() == [
            {"template_id": "compare_double", "name": "compare_double", "layout": "double"},
            {"template_id": "pitch_single", "name": "pitch_single", "layout": "single"},
        ]

    def test_manifest(self, client, make_deck):
        make_deck("greeting", [[{"text": "Hello {{name}}, welcome to {{city}}"}]])
        response = client.post("/v1/templates/manifest", json={"template_id": "greeting"})

        assert response.status_code == 200
        body = response.json()
        assert [f["name"] for f in body["fields"]] == ["name", "city"]
        assert body["slide_count"] == 1

    def test_manifest_missing_template(self, client):
        response = client.post("/v1/templates/manifest", json={"template_id": "missing"})
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == 503

    def test_convert_placeholders(self, client, make_deck, tmp_path):
        make_deck("legacy", [[{"text": "[name] in <city>"}]])
        output = tmp_path / "converted.pptx"
        response = client.post(
            "/v1/templates/convert-placeholders", json={"template_id": "legacy", "output_id": str(output)}
        )

        assert response.status_code == 200
        assert response.json()["conversions"] == 2
        assert read_deck(output) == [["{{name}} in {{city}}"]]

    def test_convert_missing_template(self, client):
        response = client.post("/v1/templates/convert-placeholders", json={"template_id": "missing"})
        assert response.status_code == 422


class TestTransformations:
    def test_run(self, client, make_deck):
        make_deck("cards", [[{"text": "{{name}} ({{city}})"}]])
        response = client.post(
            "/v1/transformations",
            json={
                "data_source": {
                    "type": "json",
                    "connection_info": {"data": json.dumps([{"name": "Acme", "city": "Oslo"}])},
                },
                "template_id": "cards",
                "destination_id": "cards_out",
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert body["result"] == "Success"
        assert body["slides_generated"] == 1
        assert read_deck(body["destination"]) == [["Acme (Oslo)"]]

    def test_run_error_reported_in_body(self, client):
        response = client.post(
            "/v1/transformations",
            json={
                "data_source": {"type": "ftp"},
                "template_id": "cards",
                "destination_id": "cards_out",
            },
        )
        assert response.status_code == 200
        assert response.json()["result"] == "Error"
        assert response.json()["error"]["code"] == 209

    def test_invalid_body_reported_in_body(self, client):
        response = client.post(
            "/v1/transformations", json={"template_id": "cards", "data_source": {"type": "json"}}
        )
        assert response.status_code == 200
        assert response.json()["result"] == "Error"
        assert response.json()["error"]["code"] == 502

    @pytest.mark.parametrize(
        ("overrides", "code"),
        [
            ({"template_id": "  "}, 501),
            ({"layout": "triple"}, 602),
        ],
    )
    def test_validation_codes(self, client, overrides, code):
        body = {
            "data_source": {"type": "json", "connection_info": {"data": "[]"}},
            "template_id": "cards",
            "destination_id": "cards_out",
            **overrides,
        }
        response = client.post("/v1/transformations", json=body)
        assert response.status_code == 200
        assert response.json()["error"]["code"] == code


class TestHandlers:
    @pytest.mark.parametrize("handler", [list_templates, describe_template, convert_placeholders])
    def test_deck_handlers_run_in_threadpool(self, handler):
        assert not inspect.iscoroutinefunction(handler)
