"""Tests for leave type CRUD and optimistic versioning."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from httpx import AsyncClient

HR_HEADERS = {"X-User-Id": str(uuid.uuid4()), "X-Role": "HR_ADMIN"}
EMPLOYEE_HEADERS = {"X-User-Id": str(uuid.uuid4()), "X-Role": "EMPLOYEE"}
URL = "/leave/types"


async def _create(client: AsyncClient, **overrides: Any) -> dict[str, Any]:
    body = {"code": "annual", "name": "Annual Leave", "is_paid": True, **overrides}
    resp = await client.post(URL, json=body, headers=HR_HEADERS)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def test_create_leave_type(async_client: AsyncClient) -> None:
    data = await _create(async_client)
    assert data["code"] == "ANNUAL"
    assert data["is_paid"] is True
    assert data["supports_half_day"] is True
    assert data["is_active"] is True
    assert data["version"] == 1


async def test_duplicate_code_rejected(async_client: AsyncClient) -> None:
    await _create(async_client)
    resp = await async_client.post(URL, json={"code": "ANNUAL", "name": "Again"}, headers=HR_HEADERS)
    assert resp.status_code == 400
    assert resp.json()["context"] == {"code": "ANNUAL"}


async def test_invalid_code_rejected(async_client: AsyncClient) -> None:
    resp = await async_client.post(URL, json={"code": "1-bad", "name": "Bad"}, headers=HR_HEADERS)
    assert resp.status_code == 400


async def test_employee_cannot_manage_types(async_client: AsyncClient) -> None:
    resp = await async_client.post(URL, json={"code": "SICK", "name": "Sick"}, headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 403


async def test_update_bumps_version(async_client: AsyncClient) -> None:
    created = await _create(async_client)
    resp = await async_client.patch(
        f"{URL}/{created['id']}",
        json={"version": 1, "name": "Annual Vacation", "deduction_rule": "NONE"},
        headers=HR_HEADERS,
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["name"] == "Annual Vacation"
    assert data["deduction_rule"] == "NONE"
    assert data["version"] == 2
    assert data["is_paid"] is True


async def test_stale_version_conflicts(async_client: AsyncClient) -> None:
    """Two editors read version 1; the second write loses."""
    created = await _create(async_client)
    first = await async_client.patch(
        f"{URL}/{created['id']}", json={"version": 1, "name": "First"}, headers=HR_HEADERS
    )
    assert first.status_code == 200

    second = await async_client.patch(
        f"{URL}/{created['id']}", json={"version": 1, "name": "Second"}, headers=HR_HEADERS
    )
    assert second.status_code == 409
    assert second.json()["error"] == "VersionConflict"
    assert second.json()["context"] == {"current_version": 2}

    current = await async_client.get(f"{URL}/{created['id']}", headers=EMPLOYEE_HEADERS)
    assert current.json()["name"] == "First"


async def test_update_without_changes_rejected(async_client: AsyncClient) -> None:
    created = await _create(async_client)
    resp = await async_client.patch(f"{URL}/{created['id']}", json={"version": 1}, headers=HR_HEADERS)
    assert resp.status_code == 400


async def test_update_code_collision(async_client: AsyncClient) -> None:
    await _create(async_client)
    sick = await _create(async_client, code="SICK", name="Sick Leave")
    resp = await async_client.patch(
        f"{URL}/{sick['id']}", json={"version": 1, "code": "annual"}, headers=HR_HEADERS
    )
    assert resp.status_code == 400


async def test_list_hides_inactive_by_default(async_client: AsyncClient) -> None:
    await _create(async_client)
    await _create(async_client, code="LEGACY", name="Legacy Leave", is_active=False)

    resp = await async_client.get(URL, headers=EMPLOYEE_HEADERS)
    assert [item["code"] for item in resp.json()["items"]] == ["ANNUAL"]

    resp = await async_client.get(URL, params={"include_inactive": "true"}, headers=EMPLOYEE_HEADERS)
    assert resp.json()["total"] == 2
    assert [item["code"] for item in resp.json()["items"]] == ["ANNUAL", "LEGACY"]


async def test_get_missing_type(async_client: AsyncClient) -> None:
    resp = await async_client.get(f"{URL}/{uuid.uuid4()}", headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 404
    assert resp.json()["error"] == "NotFound"
