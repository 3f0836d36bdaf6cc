"""
Integration tests for the Gigboard HTTP API.

Exercises the routers end to end over httpx's ASGI transport:
- POST /api/v1/profile            - provisioning profile + proposal account
- GET  /api/v1/profile/{user_id}  - cached view, account shown to owner only
- POST /api/v1/jobs               - client job postings
- POST /api/v1/proposals          - quota-gated submission
- POST /api/v1/proposals/{id}/status and milestone status
- POST /api/v1/admin/refresh-trackers

Usage:
    cd backend && pytest tests/test_api.py -v
"""

from datetime import datetime, timezone

from conftest import auth_headers, generate_uuid
from gigboard.services.quota_ledger import month_label

PROFILE_PAYLOAD = {
    "job_title": "Backend Engineer",
    "profile_description": "Builds APIs and data pipelines for small teams.",
    "skills": ["python"],
}

JOB_PAYLOAD = {
    "job_title": "Build a REST API",
    "description": "Design and implement a small REST API with auth.",
    "skills": ["python"],
    "timeline": "small",
    "total_time": "1 month",
    "expertise_level": "intermediate",
    "payment_type": "fixed",
    "price": 500,
    "fixed_payment_type": "project",
}


def error_code(response) -> str:
    return response.json()["detail"]["code"]


async def publish_current_month(client, allotment: int):
    now = datetime.now(timezone.utc)
    response = await client.post(
        "/api/v1/admin/refresh-trackers",
        json={"month": month_label(now), "year": now.year, "allotment": allotment},
        headers=auth_headers(generate_uuid(), "admin"),
    )
    assert response.status_code == 201
    return response.json()


async def create_freelancer(client):
    freelancer_id = generate_uuid()
    response = await client.post(
        "/api/v1/profile",
        json=PROFILE_PAYLOAD,
        headers=auth_headers(freelancer_id, "freelancer"),
    )
    assert response.status_code == 201
    return freelancer_id, response.json()


async def create_job(client):
    client_id = generate_uuid()
    response = await client.post(
        "/api/v1/jobs", json=JOB_PAYLOAD, headers=auth_headers(client_id, "client")
    )
    assert response.status_code == 201
    return client_id, response.json()


def proposal_payload(job, **overrides):
    payload = {
        "job_id": job["id"],
        "client_id": job["client_id"],
        "cover_letter": "I have shipped three similar projects this year.",
        "estimated_time": "2 weeks",
        "proposal_type": "fixed",
        "total_price": "500.00",
    }
    payload.update(overrides)
    return payload


# ============================================================================
# Health and auth
# ============================================================================

async def test_root_health(client):
    response = await client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.headers["X-Frame-Options"] == "DENY"


async def test_missing_token_is_unauthorized(client):
    response = await client.get("/api/v1/me/proposal-account")
    assert response.status_code == 401


async def test_garbage_token_is_unauthorized(client):
    response = await client.get(
        "/api/v1/me/proposal-account",
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert response.status_code == 401


# ============================================================================
# Profiles
# ============================================================================

class TestProfiles:
    async def test_provisioning_returns_profile_and_account(self, client):
        freelancer_id, body = await create_freelancer(client)

        assert body["profile"]["user_id"] == str(freelancer_id)
        assert body["proposal_account"]["owner_id"] == str(freelancer_id)
        assert body["proposal_account"]["balance"] == 0

    async def test_duplicate_provisioning_conflicts(self, client):
        freelancer_id, _ = await create_freelancer(client)
        response = await client.post(
            "/api/v1/profile",
            json=PROFILE_PAYLOAD,
            headers=auth_headers(freelancer_id, "freelancer"),
        )
        assert response.status_code == 409
        assert error_code(response) == "ALREADY_PROVISIONED"

    async def test_client_cannot_create_profile(self, client):
        response = await client.post(
            "/api/v1/profile",
            json=PROFILE_PAYLOAD,
            headers=auth_headers(generate_uuid(), "client"),
        )
        assert response.status_code == 403

    async def test_short_description_rejected(self, client):
        response = await client.post(
            "/api/v1/profile",
            json={**PROFILE_PAYLOAD, "profile_description": "short"},
            headers=auth_headers(generate_uuid(), "freelancer"),
        )
        assert response.status_code == 422

    async def test_account_visible_to_owner_only(self, client):
        freelancer_id, _ = await create_freelancer(client)
        url = f"/api/v1/profile/{freelancer_id}"

        owner = await client.get(url, headers=auth_headers(freelancer_id, "freelancer"))
        other = await client.get(url, headers=auth_headers(generate_uuid(), "client"))

        assert owner.json()["source"] == "fresh"
        assert owner.json()["proposal_account"]["balance"] == 0
        assert other.json()["source"] == "cache"
        assert other.json()["proposal_account"] is None

    async def test_edit_then_read_is_fresh(self, client):
        freelancer_id, _ = await create_freelancer(client)
        headers = auth_headers(freelancer_id, "freelancer")
        url = f"/api/v1/profile/{freelancer_id}"
        await client.get(url, headers=headers)

        response = await client.put(
            "/api/v1/profile",
            json={**PROFILE_PAYLOAD, "job_title": "Data Engineer"},
            headers=headers,
        )
        assert response.status_code == 200

        view = (await client.get(url, headers=headers)).json()
        assert view["source"] == "fresh"
        assert view["profile"]["job_title"] == "Data Engineer"

    async def test_unknown_profile(self, client):
        response = await client.get(
            f"/api/v1/profile/{generate_uuid()}",
            headers=auth_headers(generate_uuid(), "client"),
        )
        assert response.status_code == 404


# ============================================================================
# Proposals
# ============================================================================

class TestProposals:
    async def test_submission_flow(self, client):
        await publish_current_month(client, 3)
        freelancer_id, provisioned = await create_freelancer(client)
        assert provisioned["proposal_account"]["balance"] == 3
        client_id, job = await create_job(client)
        freelancer = auth_headers(freelancer_id, "freelancer")
        owner = auth_headers(client_id, "client")

        response = await client.post(
            "/api/v1/proposals", json=proposal_payload(job), headers=freelancer
        )
        assert response.status_code == 201
        proposal = response.json()
        assert proposal["status"] == "pending"

        account = await client.get("/api/v1/me/proposal-account", headers=freelancer)
        assert account.json()["balance"] == 2

        status_url = f"/api/v1/proposals/{proposal['id']}/status"
        jump = await client.post(
            status_url, json={"new_status": "accepted"}, headers=owner
        )
        assert jump.status_code == 409
        assert error_code(jump) == "INVALID_TRANSITION"

        for new_status in ("viewed", "accepted"):
            response = await client.post(
                status_url, json={"new_status": new_status}, headers=owner
            )
            assert response.status_code == 200
        assert response.json()["status"] == "accepted"

        listed = await client.get(
            f"/api/v1/jobs/{job['id']}/proposals", headers=owner
        )
        assert listed.json()["total"] == 1

        history = await client.get(
            f"/api/v1/proposals/{proposal['id']}/history", headers=freelancer
        )
        assert [h["new_status"] for h in history.json()] == [
            "pending",
            "viewed",
            "accepted",
        ]

    async def test_exhausted_quota_conflicts(self, client):
        freelancer_id, _ = await create_freelancer(client)
        _, job = await create_job(client)

        response = await client.post(
            "/api/v1/proposals",
            json=proposal_payload(job),
            headers=auth_headers(freelancer_id, "freelancer"),
        )
        assert response.status_code == 409
        assert error_code(response) == "INSUFFICIENT_QUOTA"

    async def test_milestone_sum_mismatch_is_bad_request(self, client):
        freelancer_id, _ = await create_freelancer(client)
        _, job = await create_job(client)
        payload = proposal_payload(
            job,
            proposal_type="milestones",
            total_price="300.00",
            milestones=[
                {
                    "description": "Schema",
                    "due_date": "2030-03-01T00:00:00Z",
                    "price": "100.00",
                }
            ],
        )

        response = await client.post(
            "/api/v1/proposals",
            json=payload,
            headers=auth_headers(freelancer_id, "freelancer"),
        )
        assert response.status_code == 400
        assert error_code(response) == "VALIDATION_ERROR"

    async def test_outsider_cannot_read_proposal(self, client):
        await publish_current_month(client, 1)
        freelancer_id, _ = await create_freelancer(client)
        _, job = await create_job(client)
        created = await client.post(
            "/api/v1/proposals",
            json=proposal_payload(job),
            headers=auth_headers(freelancer_id, "freelancer"),
        )

        response = await client.get(
            f"/api/v1/proposals/{created.json()['id']}",
            headers=auth_headers(generate_uuid(), "client"),
        )
        assert response.status_code == 403


# ============================================================================
# Administration
# ============================================================================

async def test_publish_requires_admin(client):
    response = await client.post(
        "/api/v1/admin/refresh-trackers",
        json={"month": "Jan", "year": 2025, "allotment": 5},
        headers=auth_headers(generate_uuid(), "freelancer"),
    )
    assert response.status_code == 403


async def test_jobs_are_posted_by_clients_only(client):
    response = await client.post(
        "/api/v1/jobs",
        json=JOB_PAYLOAD,
        headers=auth_headers(generate_uuid(), "freelancer"),
    )
    assert response.status_code == 403
