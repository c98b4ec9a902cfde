import uuid

import pytest
from httpx import AsyncClient


@pytest.fixture()
async def setup(make_grade, make_pupil, make_fee):
    grade = await make_grade("Grade 6")
    pupil = await make_pupil(grade.id, "Natasha Mumba")
    await make_fee(grade.id, "500")
    return grade, pupil


@pytest.mark.asyncio
async def test_requests_without_token_are_unauthorized(client: AsyncClient) -> None:
    response = await client.get("/api/v1/grades")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_payment_workflow_over_http(client: AsyncClient, setup, act_as, school_admin, director) -> None:
    _, pupil = setup

    act_as(school_admin)
    response = await client.post(
        "/api/v1/payments",
        json={"pupil_id": str(pupil.id), "term_number": 1, "year": 2024, "amount": "500"},
    )
    assert response.status_code == 201
    payment = response.json()
    assert payment["state"] == "active"

    response = await client.get(
        f"/api/v1/balances/pupils/{pupil.id}", params={"term_number": 1, "year": 2024}
    )
    assert response.status_code == 200
    assert response.json()["status"] == "paid"

    response = await client.post(
        f"/api/v1/payments/{payment['id']}/soft-delete", json={"reason": "Duplicate receipt"}
    )
    assert response.status_code == 200
    assert response.json()["state"] == "pending_deletion"

    # School admins may not approve deletions.
    response = await client.post(f"/api/v1/payments/{payment['id']}/approve-deletion")
    assert response.status_code == 403

    act_as(director)
    response = await client.get("/api/v1/payments/pending-deletions")
    assert [p["id"] for p in response.json()] == [payment["id"]]

    response = await client.post(f"/api/v1/payments/{payment['id']}/approve-deletion")
    assert response.status_code == 200
    assert response.json()["state"] == "deletion_approved"

    response = await client.post(f"/api/v1/payments/{payment['id']}/approve-deletion")
    assert response.status_code == 409

    response = await client.get(
        f"/api/v1/balances/pupils/{pupil.id}", params={"term_number": 1, "year": 2024}
    )
    assert response.json()["collected"] in ("0", "0.00")
    assert response.json()["outstanding"] in ("500", "500.00")


@pytest.mark.asyncio
async def test_invalid_amount_is_rejected(client: AsyncClient, setup, act_as, school_admin) -> None:
    _, pupil = setup
    act_as(school_admin)
    response = await client.post(
        "/api/v1/payments",
        json={"pupil_id": str(pupil.id), "term_number": 1, "year": 2024, "amount": "0"},
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_unknown_pupil_payment_is_bad_request(client: AsyncClient, setup, act_as, school_admin) -> None:
    act_as(school_admin)
    response = await client.post(
        "/api/v1/payments",
        json={"pupil_id": str(uuid.uuid4()), "term_number": 1, "year": 2024, "amount": "10"},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_fee_resolution_over_http(client: AsyncClient, setup, act_as, director) -> None:
    grade, _ = setup
    act_as(director)
    response = await client.get(
        "/api/v1/fees/resolve", params={"grade_id": str(grade.id), "term_number": 1, "year": 2024}
    )
    assert response.status_code == 200
    assert response.json()["is_active"] is True

    response = await client.get(
        "/api/v1/fees/resolve", params={"grade_id": str(grade.id), "term_number": 2, "year": 2024}
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_director_cannot_manage_grades(client: AsyncClient, act_as, director) -> None:
    act_as(director)
    response = await client.post("/api/v1/grades", json={"name": "Grade 9"})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_grade_delete_guard_over_http(client: AsyncClient, setup, act_as, school_admin) -> None:
    grade, _ = setup
    act_as(school_admin)
    response = await client.delete(f"/api/v1/grades/{grade.id}")
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_school_summary_and_dashboard(client: AsyncClient, setup, act_as, school_admin) -> None:
    act_as(school_admin)
    response = await client.get("/api/v1/balances/school", params={"term_number": 1, "year": 2024})
    assert response.status_code == 200
    body = response.json()
    assert body["total_pupils"] == 1
    assert body["grades"][0]["grade_name"] == "Grade 6"

    response = await client.get("/api/v1/dashboard", params={"term_number": 1, "year": 2024})
    assert response.status_code == 200
    assert response.json()["heatmap"][0]["band"] == "critical"

    response = await client.get("/api/v1/balances/grades/" + str(uuid.uuid4()), params={"term_number": 1, "year": 2024})
    assert response.status_code == 404
