"""
tests/test_csv_imports_api.py

HTTP tests for the admin CSV import and template endpoints.

Every request runs against the seeded in-memory database through FastAPI's
TestClient; responses are checked for the camelCase envelope.
"""

from __future__ import annotations

import json

from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.config import CSVImportSettings, get_csv_import_settings

BASE_URL = "/api/admin/csv-imports"
HEADER = "State,Year,Category,Measure,Value"
ALABAMA_CSV = f"{HEADER}\nAlabama,2023,Economy,GDP,200000\n"
INVALID_STATE_CSV = f"{HEADER}\nInvalidState,2023,Economy,GDP,200000\n"


def _upload(
    client: TestClient,
    content: str | bytes,
    *,
    filename: str = "states.csv",
    content_type: str = "text/csv",
    template_id: str | None = "1",
    metadata: str | None = None,
):
    data = {"userId": "1"}
    if template_id is not None:
        data["templateId"] = template_id
    if metadata is not None:
        data["metadata"] = metadata
    payload = content.encode("utf-8") if isinstance(content, str) else content
    return client.post(BASE_URL, files={"file": (filename, payload, content_type)}, data=data)


def _import_id(response) -> int:
    assert response.status_code == 200, response.text
    return response.json()["data"]["importId"]


# ---------------------------------------------------------------------------
# End-to-end flows
# ---------------------------------------------------------------------------


def test_upload_validate_publish_flow(client: TestClient) -> None:
    upload = _upload(client, ALABAMA_CSV, metadata=json.dumps({"name": "Alabama GDP"}))

    assert upload.status_code == 200
    body = upload.json()
    assert body["success"] is True
    assert body["data"]["stats"] == {"totalRows": 1, "validRows": 1, "invalidRows": 0, "warnings": []}
    assert body["data"]["message"] == "Successfully uploaded and staged 1 rows"
    import_id = body["data"]["importId"]

    validate = client.post(f"{BASE_URL}/{import_id}/validate")
    assert validate.status_code == 200
    assert validate.json()["data"]["isValid"] is True
    assert validate.json()["data"]["stats"]["validRows"] == 1

    publish = client.post(f"{BASE_URL}/{import_id}/publish", json={"userId": 1})
    assert publish.status_code == 200
    assert publish.json()["success"] is True
    assert publish.json()["data"]["publishedRows"] == 1
    assert publish.json()["data"]["importSessionId"] is not None

    details = client.get(f"{BASE_URL}/{import_id}")
    assert details.status_code == 200
    data = details.json()["data"]
    assert data["csvImport"]["name"] == "Alabama GDP"
    assert data["csvImport"]["status"] == "published"
    assert data["csvImport"]["uploaderName"] == "Admin User"
    assert data["stagedRows"][0]["isProcessed"] is True
    assert data["stagedRows"][0]["stateId"] == 1
    assert data["metadata"] == [{"key": "name", "value": "Alabama GDP", "dataType": "string"}]


def test_unknown_state_fails_validation_and_blocks_publish(client: TestClient) -> None:
    import_id = _import_id(_upload(client, INVALID_STATE_CSV))

    validate = client.post(f"{BASE_URL}/{import_id}/validate")

    assert validate.status_code == 400
    body = validate.json()
    assert body["success"] is False
    assert body["error"] == "Validation failed"
    assert any("not found in database" in error for error in body["errors"])
    assert body["details"]["isValid"] is False
    assert body["details"]["failureBreakdown"] == {"invalid_reference": 1}

    publish = client.post(f"{BASE_URL}/{import_id}/publish", json={"userId": 1})
    assert publish.status_code == 400
    assert publish.json()["error"] == "Import must be validated before publishing"


def test_second_publish_is_rejected(client: TestClient) -> None:
    import_id = _import_id(_upload(client, ALABAMA_CSV))
    client.post(f"{BASE_URL}/{import_id}/validate")
    assert client.post(f"{BASE_URL}/{import_id}/publish").status_code == 200

    again = client.post(f"{BASE_URL}/{import_id}/publish", json={"userId": 1})

    assert again.status_code == 400
    assert again.json()["details"] == {"publishedRows": 0}


def test_rollback_endpoint(client: TestClient) -> None:
    import_id = _import_id(_upload(client, ALABAMA_CSV))
    client.post(f"{BASE_URL}/{import_id}/validate")
    client.post(f"{BASE_URL}/{import_id}/publish")

    rollback = client.post(f"{BASE_URL}/{import_id}/rollback", json={"userId": 1})

    assert rollback.status_code == 200
    assert rollback.json()["data"]["removedRows"] == 1
    assert client.get(f"{BASE_URL}/{import_id}").json()["data"]["csvImport"]["status"] == "rolled_back"

    again = client.post(f"{BASE_URL}/{import_id}/rollback")
    assert again.status_code == 400
    assert again.json()["error"] == "Only published imports can be rolled back"


# ---------------------------------------------------------------------------
# Upload rejection
# ---------------------------------------------------------------------------


def test_non_csv_file_is_rejected(client: TestClient) -> None:
    response = _upload(client, "hello", filename="notes.txt", content_type="text/plain")

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Only CSV files are allowed."}


def test_oversized_file_is_rejected(api_app: FastAPI, client: TestClient) -> None:
    api_app.dependency_overrides[get_csv_import_settings] = lambda: CSVImportSettings(max_file_size_bytes=16)

    response = _upload(client, ALABAMA_CSV)

    assert response.status_code == 400
    assert response.json()["error"].startswith("File too large")


def test_missing_headers_are_listed(client: TestClient) -> None:
    response = _upload(client, "State,Year,Value\nAlabama,2023,1\n")

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Invalid CSV format"
    assert body["errors"] == ["Missing required column: Category", "Missing required column: Measure"]


def test_invalid_metadata_json(client: TestClient) -> None:
    response = _upload(client, ALABAMA_CSV, metadata="{not json")

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid metadata JSON"


def test_missing_template_id(client: TestClient) -> None:
    response = _upload(client, ALABAMA_CSV, template_id=None)

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Invalid request"
    assert any("templateId" in error for error in body["errors"])


def test_unknown_template(client: TestClient) -> None:
    response = _upload(client, ALABAMA_CSV, template_id="99")

    assert response.status_code == 400
    assert response.json()["error"] == "Template 99 not found"


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def test_unknown_import_is_404(client: TestClient) -> None:
    assert client.get(f"{BASE_URL}/999").status_code == 404
    assert client.post(f"{BASE_URL}/999/validate").status_code == 404
    assert client.post(f"{BASE_URL}/999/publish").status_code == 404
    assert client.get(f"{BASE_URL}/999/failed-rows").status_code == 404
    assert client.get(f"{BASE_URL}/999").json()["error"] == "Import 999 not found"


def test_history_paging_and_filters(client: TestClient) -> None:
    _import_id(_upload(client, ALABAMA_CSV))
    latest = _import_id(_upload(client, INVALID_STATE_CSV))

    page = client.get(BASE_URL, params={"page": 1, "limit": 1})

    assert page.status_code == 200
    data = page.json()["data"]
    assert data["total"] == 2
    assert data["totalPages"] == 2
    assert [item["id"] for item in data["items"]] == [latest]

    published = client.get(BASE_URL, params={"status": "published"}).json()["data"]
    assert published["total"] == 0
    assert client.get(BASE_URL, params={"uploadedBy": 1}).json()["data"]["total"] == 2


def test_failed_rows_download(client: TestClient) -> None:
    import_id = _import_id(_upload(client, INVALID_STATE_CSV))

    response = client.get(f"{BASE_URL}/{import_id}/failed-rows")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert f"import-{import_id}-failed-rows.csv" in response.headers["content-disposition"]
    lines = response.text.strip().split("\n")
    assert lines[0] == "Row Number,Field Name,Field Value,Failure Category,Message"
    assert lines[1].startswith("2,state,InvalidState,invalid_reference,")


def test_templates_endpoints(client: TestClient) -> None:
    listing = client.get("/api/admin/csv-templates")

    assert listing.status_code == 200
    assert [item["name"] for item in listing.json()["data"]] == [
        "Economy Single Statistic",
        "Flexible State Data",
        "Multi-Category Data",
    ]

    detail = client.get("/api/admin/csv-templates/1").json()["data"]
    assert detail["templateSchema"]["expectedHeaders"] == ["State", "Year", "Category", "Measure", "Value"]
    assert detail["templateSchema"]["flexibleColumns"] is False
    assert detail["validationRules"] == {
        "year": [{"type": "range", "value": {"min": 1990.0, "max": 2100.0}, "message": None}],
    }

    missing = client.get("/api/admin/csv-templates/99")
    assert missing.status_code == 404
    assert missing.json()["error"] == "Template 99 not found"
