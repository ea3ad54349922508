import csv
import io

import pytest
from httpx import AsyncClient

from app.api.v1.dependencies import get_import_service
from app.main import app
from app.services.imports.parser import CsvParser
from app.services.imports.service import ProspectImportService

API = "/api/v1"
ORG_HEADERS = {"X-Organisation-Id": "org-acme"}

PROSPECTS_CSV = (
    b"Company,E-mail,Contact,Website\n"
    b"Acme Corp,sarah@acme.com,Sarah Johnson,acme.com\n"
    b"Globex,hank@globex.com,Hank Scorpio,\n"
    b",bad-email,Nobody,\n"
    b"Acme Corp,SARAH@ACME.COM,Sarah J,\n"
)

COLUMN_MAP = {
    "company": "company_name",
    "e-mail": "contact_email",
    "contact": "contact_name",
    "website": "website_url",
}


async def upload(client: AsyncClient, campaign_id, content=PROSPECTS_CSV, filename="prospects.csv", headers=None):
    return await client.post(
        f"{API}/campaigns/{campaign_id}/prospects/upload",
        files={"file": (filename, content, "text/csv")},
        headers=ORG_HEADERS if headers is None else headers,
    )


async def mapped_upload(client: AsyncClient, campaign_id):
    upload_id = (await upload(client, campaign_id)).json()["upload_id"]
    response = await client.post(
        f"{API}/imports/{upload_id}/parse",
        json={"column_mappings": COLUMN_MAP},
        headers=ORG_HEADERS,
    )
    assert response.status_code == 200
    return upload_id


@pytest.mark.asyncio
async def test_full_upload_workflow(async_client: AsyncClient, seeded_campaigns):
    campaign_id = seeded_campaigns["campaign_id"]

    response = await upload(async_client, campaign_id)
    assert response.status_code == 201
    body = response.json()
    assert body["campaign_id"] == campaign_id
    assert body["row_count"] == 4
    assert body["file_size"] == len(PROSPECTS_CSV)
    upload_id = body["upload_id"]
    assert upload_id.startswith("upload-")

    response = await async_client.get(f"{API}/imports/{upload_id}/columns", headers=ORG_HEADERS)
    assert response.status_code == 200
    columns = response.json()
    assert columns["detected_columns"] == ["company", "e-mail", "contact", "website"]
    assert [m["suggested"] for m in columns["suggested_mappings"]] == list(COLUMN_MAP.values())
    assert all(m["confidence"] == "high" for m in columns["suggested_mappings"])
    assert columns["validation"]["valid"] is True

    response = await async_client.post(
        f"{API}/imports/{upload_id}/parse",
        json={"column_mappings": COLUMN_MAP},
        headers=ORG_HEADERS,
    )
    assert response.status_code == 200
    preview = response.json()
    assert preview["row_count"] == 4
    assert len(preview["preview"]) == 3
    assert preview["preview"][0]["company_name"] == "Acme Corp"
    assert preview["parse_errors"] == []

    response = await async_client.post(f"{API}/imports/{upload_id}/validate-data", headers=ORG_HEADERS)
    assert response.status_code == 200
    validation = response.json()
    assert validation["valid_count"] == 2
    assert validation["invalid_count"] == 2
    assert validation["total_error_count"] == 3
    assert validation["duplicate_count"] == 1
    assert validation["errors_truncated"] is False
    assert [e["row_number"] for e in validation["errors"]] == [3, 3, 4]

    response = await async_client.post(f"{API}/imports/{upload_id}/export-errors", headers=ORG_HEADERS)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert f"errors_{upload_id}.csv" in response.headers["content-disposition"]
    records = list(csv.reader(io.StringIO(response.text, newline="")))
    assert len(records) == 3
    assert [record[0] for record in records[1:]] == ["3", "4"]
    assert records[2][5] == "DUPLICATE_EMAIL"

    response = await async_client.post(f"{API}/imports/{upload_id}/import", headers=ORG_HEADERS)
    assert response.status_code == 200
    imported = response.json()
    assert imported["campaign_id"] == campaign_id
    assert imported["summary"]["imported"] == 2
    assert imported["summary"]["failed"] == 0
    assert imported["skipped_count"] == 2

    # The imported rows now collide with what is on file
    response = await async_client.post(f"{API}/imports/{upload_id}/validate-data", headers=ORG_HEADERS)
    assert response.json()["valid_count"] == 0
    assert response.json()["duplicate_count"] == 4

    response = await async_client.post(
        f"{API}/imports/{upload_id}/validate-data",
        json={"override_duplicates": True},
        headers=ORG_HEADERS,
    )
    assert response.json()["valid_count"] == 2

    response = await async_client.post(
        f"{API}/imports/{upload_id}/import",
        json={"override_duplicates": True},
        headers=ORG_HEADERS,
    )
    assert response.status_code == 409
    assert response.json()["code"] == "DUPLICATE_PROSPECT"


@pytest.mark.asyncio
async def test_missing_organisation_header_is_rejected(async_client: AsyncClient, seeded_campaigns):
    response = await upload(async_client, seeded_campaigns["campaign_id"], headers={})

    assert response.status_code == 401
    assert response.json()["status"] == "error"
    assert response.json()["code"] == "ORGANISATION_REQUIRED"


@pytest.mark.asyncio
async def test_upload_to_another_organisations_campaign(async_client: AsyncClient, seeded_campaigns):
    response = await upload(async_client, seeded_campaigns["other_campaign_id"])

    assert response.status_code == 404
    assert response.json()["message"] == "Campaign not found"


@pytest.mark.asyncio
async def test_oversized_upload_is_rejected(async_client: AsyncClient, session_factory, seeded_campaigns):
    app.dependency_overrides[get_import_service] = lambda: ProspectImportService(
        session_factory, parser=CsvParser(max_file_size=64)
    )

    response = await upload(async_client, seeded_campaigns["campaign_id"])

    assert response.status_code == 413
    assert response.json()["code"] == "FILE_TOO_LARGE"


@pytest.mark.asyncio
async def test_wrong_file_type_is_rejected(async_client: AsyncClient, seeded_campaigns):
    response = await upload(async_client, seeded_campaigns["campaign_id"], filename="prospects.xlsx")

    assert response.status_code == 415
    assert response.json()["code"] == "UNSUPPORTED_FILE_TYPE"


@pytest.mark.asyncio
async def test_download_template(async_client: AsyncClient):
    response = await async_client.get(f"{API}/campaigns/prospects/template")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert response.text.startswith("company_name,contact_email,contact_name,website_url")


@pytest.mark.asyncio
async def test_unknown_upload(async_client: AsyncClient, seeded_campaigns):
    response = await async_client.get(f"{API}/imports/upload-missing/columns", headers=ORG_HEADERS)

    assert response.status_code == 404
    assert response.json()["message"] == "Upload not found"


@pytest.mark.asyncio
async def test_upload_is_invisible_to_other_organisations(async_client: AsyncClient, seeded_campaigns):
    upload_id = (await upload(async_client, seeded_campaigns["campaign_id"])).json()["upload_id"]

    response = await async_client.get(
        f"{API}/imports/{upload_id}/columns",
        headers={"X-Organisation-Id": seeded_campaigns["other_organisation_id"]},
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_mapping_without_email_is_rejected(async_client: AsyncClient, seeded_campaigns):
    upload_id = (await upload(async_client, seeded_campaigns["campaign_id"])).json()["upload_id"]

    response = await async_client.post(
        f"{API}/imports/{upload_id}/parse",
        json={"column_mappings": {"company": "company_name", "contact": "contact_name"}},
        headers=ORG_HEADERS,
    )

    assert response.status_code == 422
    assert response.json()["code"] == "MAPPING_ERROR"
    assert response.json()["details"]["missing"] == ["contact_email"]


@pytest.mark.asyncio
async def test_validate_before_mapping(async_client: AsyncClient, seeded_campaigns):
    upload_id = (await upload(async_client, seeded_campaigns["campaign_id"])).json()["upload_id"]

    response = await async_client.post(f"{API}/imports/{upload_id}/validate-data", headers=ORG_HEADERS)

    assert response.status_code == 422
    assert response.json()["message"].startswith("Column mappings must be set")


@pytest.mark.asyncio
async def test_header_only_file_has_no_columns_to_map(async_client: AsyncClient, seeded_campaigns):
    response = await upload(async_client, seeded_campaigns["campaign_id"], content=b"Company,E-mail\n")
    assert response.status_code == 201
    assert response.json()["row_count"] == 0

    response = await async_client.get(
        f"{API}/imports/{response.json()['upload_id']}/columns", headers=ORG_HEADERS
    )

    assert response.status_code == 422
    assert response.json()["message"] == "CSV file contains no data rows"


@pytest.mark.asyncio
async def test_delete_upload(async_client: AsyncClient, seeded_campaigns):
    upload_id = await mapped_upload(async_client, seeded_campaigns["campaign_id"])

    response = await async_client.delete(f"{API}/imports/{upload_id}", headers=ORG_HEADERS)
    assert response.status_code == 204

    response = await async_client.delete(f"{API}/imports/{upload_id}", headers=ORG_HEADERS)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_health_check(async_client: AsyncClient):
    response = await async_client.get("/")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
