"""Seed script for development data.

Run with:  python -m hrops.seed
Inside Docker:  docker compose exec api python -m hrops.seed

Talks to a running API over HTTP, so every seeded change goes through the
same permission checks and audit trail as real traffic.
"""

from __future__ import annotations

import asyncio
import os
import sys
from datetime import date, timedelta

import httpx

BASE_URL = os.environ.get("HROPS_BASE_URL", "http://localhost:8000")

HR_ADMIN_ID = "00000000-0000-0000-0000-000000000001"
MANAGER_ID = "00000000-0000-0000-0000-000000000002"
ALICE_ID = "00000000-0000-0000-0000-000000000003"
BOB_ID = "00000000-0000-0000-0000-000000000004"


def _headers(user_id: str, role: str) -> dict[str, str]:
    return {"Content-Type": "application/json", "X-User-Id": user_id, "X-Role": role}


HR_HEADERS = _headers(HR_ADMIN_ID, "HR_ADMIN")
MANAGER_HEADERS = _headers(MANAGER_ID, "MANAGER")
ALICE_HEADERS = _headers(ALICE_ID, "EMPLOYEE")

LEAVE_TYPES = [
    {"code": "ANNUAL", "name": "Annual Leave", "is_paid": True, "supports_half_day": True, "affects_payroll": False},
    {"code": "SICK", "name": "Sick Leave", "is_paid": True, "supports_half_day": True, "affects_payroll": False},
    {
        "code": "UNPAID",
        "name": "Unpaid Leave",
        "is_paid": False,
        "supports_half_day": False,
        "affects_payroll": True,
        "deduction_rule": "PRORATA_DAILY",
    },
]

# (employee_id, leave type code, opening balance)
BALANCES = [
    (ALICE_ID, "ANNUAL", "18"),
    (ALICE_ID, "SICK", "10"),
    (BOB_ID, "ANNUAL", "18"),
    (BOB_ID, "SICK", "10"),
]


async def _post(client: httpx.AsyncClient, path: str, json: dict, headers: dict[str, str], label: str) -> dict | None:
    """POST, tolerating duplicates so the script can be re-run."""
    resp = await client.post(f"{BASE_URL}{path}", json=json, headers=headers)
    if resp.status_code in (200, 201):
        print(f"  [OK] {label}")
        return resp.json()
    if resp.status_code in (400, 409) and "already exists" in resp.text:
        print(f"  [SKIP] {label} (already exists)")
        return None
    print(f"  [ERROR] {label}: {resp.status_code} {resp.text[:200]}")
    return None


async def seed_leave_types(client: httpx.AsyncClient) -> dict[str, str]:
    """Seed leave types and return a code->id mapping."""
    print("\n--- Seeding leave types ---")
    for leave_type in LEAVE_TYPES:
        await _post(client, "/leave/types", leave_type, HR_HEADERS, leave_type["code"])

    resp = await client.get(f"{BASE_URL}/leave/types", headers=HR_HEADERS)
    resp.raise_for_status()
    return {item["code"]: item["id"] for item in resp.json()["items"]}


async def seed_balances(client: httpx.AsyncClient, type_ids: dict[str, str], year: int) -> None:
    print(f"\n--- Seeding {year} balances ---")
    for employee_id, code, opening in BALANCES:
        await _post(
            client,
            "/leave/balances/grant",
            {
                "employee_id": employee_id,
                "leave_type_id": type_ids[code],
                "year": year,
                "opening_balance": opening,
                "grant_amount": "0",
                "reason": "Initial allocation",
            },
            HR_HEADERS,
            f"{code} {opening} for {employee_id[-4:]}",
        )


async def seed_leave_requests(client: httpx.AsyncClient, type_ids: dict[str, str]) -> None:
    """One approved and one pending request for Alice."""
    print("\n--- Seeding leave requests ---")
    today = date.today()
    approved_start = today + timedelta(days=14)
    approved = await _post(
        client,
        "/leave/requests",
        {
            "leave_type_id": type_ids["ANNUAL"],
            "start_date": approved_start.isoformat(),
            "end_date": (approved_start + timedelta(days=2)).isoformat(),
            "reason": "Family trip",
        },
        ALICE_HEADERS,
        "Alice annual leave (3 days)",
    )
    if approved is not None:
        await _post(
            client,
            f"/leave/requests/{approved['id']}/approve",
            {"reason": "Enjoy"},
            MANAGER_HEADERS,
            "Manager approves Alice's annual leave",
        )

    half_day = today + timedelta(days=30)
    await _post(
        client,
        "/leave/requests",
        {
            "leave_type_id": type_ids["SICK"],
            "start_date": half_day.isoformat(),
            "end_date": half_day.isoformat(),
            "unit": "HALF_DAY",
            "half_day_part": "AM",
            "reason": "Dentist appointment",
        },
        ALICE_HEADERS,
        "Alice half-day sick leave (pending)",
    )


async def seed_timesheet(client: httpx.AsyncClient) -> None:
    """Fill and submit Alice's timesheet for last week."""
    print("\n--- Seeding timesheet ---")
    today = date.today()
    last_monday = today - timedelta(days=today.weekday() + 7)
    timesheet: dict | None = None
    for offset in range(5):
        timesheet = await _post(
            client,
            "/timesheets/worklog",
            {"work_date": (last_monday + timedelta(days=offset)).isoformat(), "task": "Development", "hours": "8"},
            ALICE_HEADERS,
            f"Worklog {last_monday + timedelta(days=offset)}",
        )
    if timesheet is not None and timesheet["status"] in ("DRAFT", "REVISION_REQUIRED"):
        await _post(client, f"/timesheets/{timesheet['id']}/submit", {}, ALICE_HEADERS, "Submit timesheet")


async def main() -> None:
    print("=" * 60)
    print("  HR Ops Core: Development Seed Script")
    print("=" * 60)

    async with httpx.AsyncClient(timeout=30.0) as client:
        try:
            resp = await client.get(f"{BASE_URL}/health")
            if resp.status_code != 200:
                print(f"API health check failed: {resp.status_code}")
                sys.exit(1)
            print("\n[OK] API is healthy")
        except httpx.ConnectError:
            print("ERROR: Cannot connect to API at", BASE_URL)
            sys.exit(1)

        type_ids = await seed_leave_types(client)
        await seed_balances(client, type_ids, date.today().year)
        await seed_leave_requests(client, type_ids)
        await seed_timesheet(client)

    print("\n" + "=" * 60)
    print("  Seeding complete!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
