"""API endpoint tests.

Tests the FastAPI endpoints against an in-memory database.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from overtime_engine.api.app import create_app
from overtime_engine.api.dependencies import get_db_session
from overtime_engine.models import ApprovalThreshold
from overtime_engine.services.lifecycle_service import Actor
from overtime_engine.services.resubmission_service import ResubmissionTracker


def actor_headers(actor: Actor) -> dict[str, str]:
    return {
        "X-Actor-Id": str(actor.user_id),
        "X-Actor-Role": actor.role,
        "X-Actor-Name": actor.name,
    }


def submission_body(employee_id, start="18:00:00", end="20:00:00", ot_date="2026-03-02", **kwargs):
    body = {
        "employee_id": str(employee_id),
        "ot_date": ot_date,
        "start_time": start,
        "end_time": end,
        "reason": "Month-end closing",
    }
    body.update(kwargs)
    return body


@pytest.fixture
async def seeded_db(session, test_staff, test_policies):
    """Commit the fixture data so request sessions can see it."""
    await session.commit()
    return session


@pytest.fixture
def app(session_factory, emitter, seeded_db):
    app = create_app(emitter=emitter)

    async def override_db_session():
        async with session_factory() as db:
            yield db

    app.dependency_overrides[get_db_session] = override_db_session
    return app


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


async def submit(client, actor, **kwargs):
    response = await client.post(
        "/api/v1/overtime-requests",
        headers=actor_headers(actor),
        json=submission_body(actor.user_id, **kwargs),
    )
    assert response.status_code == 201, response.text
    return response.json()["request"]


async def act(client, actor, ids, role, decision, remarks=None):
    return await client.post(
        "/api/v1/overtime-requests/actions",
        headers=actor_headers(actor),
        json={
            "request_ids": [str(i) for i in ids],
            "role": role,
            "decision": decision,
            "remarks": remarks,
        },
    )


class TestHealthEndpoints:
    """Test health check endpoints."""

    async def test_health_check(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "healthy"
        assert data["active_formulas"] == 3

    async def test_readiness_and_liveness(self, client: AsyncClient):
        assert (await client.get("/ready")).json() == {"status": "ready"}
        assert (await client.get("/live")).json() == {"status": "alive"}


class TestSubmission:
    """Test overtime submission endpoints."""

    async def test_submit(self, client, actors, test_staff, events):
        response = await client.post(
            "/api/v1/overtime-requests",
            headers=actor_headers(actors["alice"]),
            json=submission_body(test_staff["alice"].employee_id, start="08:00:00", end="18:00:00"),
        )

        assert response.status_code == 201, response.text
        data = response.json()
        assert data["formula_error"] is None
        request = data["request"]
        assert request["status"] == "pending_verification"
        assert Decimal(request["total_hours"]) == Decimal("10")
        assert Decimal(request["ot_amount"]) == Decimal("187.5")
        assert request["ticket_number"].startswith("OT-20260302-")
        assert [e.event_kind.value for e in events] == ["submitted"]

    async def test_actor_headers_required(self, client, test_staff):
        response = await client.post(
            "/api/v1/overtime-requests",
            json=submission_body(test_staff["alice"].employee_id),
        )
        assert response.status_code == 400

    async def test_invalid_actor_id(self, client, test_staff):
        response = await client.post(
            "/api/v1/overtime-requests",
            headers={"X-Actor-Id": "not-a-uuid", "X-Actor-Role": "employee"},
            json=submission_body(test_staff["alice"].employee_id),
        )
        assert response.status_code == 400

    async def test_overlap_is_validation_error(self, client, actors):
        await submit(client, actors["alice"], start="09:00:00", end="12:00:00")

        response = await client.post(
            "/api/v1/overtime-requests",
            headers=actor_headers(actors["alice"]),
            json=submission_body(actors["alice"].user_id, start="11:00:00", end="13:00:00"),
        )

        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"

        await submit(client, actors["alice"], start="12:00:00", end="14:00:00")

    async def test_reversed_range(self, client, actors):
        response = await client.post(
            "/api/v1/overtime-requests",
            headers=actor_headers(actors["alice"]),
            json=submission_body(actors["alice"].user_id, start="20:00:00", end="18:00:00"),
        )

        assert response.status_code == 422
        assert response.json()["context"] == {"field": "end_time"}

    async def test_auto_block_threshold(self, client, actors, session_factory):
        async with session_factory() as db:
            db.add(
                ApprovalThreshold(
                    threshold_name="Hard cap", daily_limit_hours=Decimal("1"), auto_block_enabled=True
                )
            )
            await db.commit()

        response = await client.post(
            "/api/v1/overtime-requests",
            headers=actor_headers(actors["alice"]),
            json=submission_body(actors["alice"].user_id),
        )

        assert response.status_code == 422
        data = response.json()
        assert data["code"] == "THRESHOLD_EXCEEDED"
        assert data["context"]["type"] == "daily_hours"

    async def test_missing_formula_surfaced(self, client, actors):
        response = await client.post(
            "/api/v1/overtime-requests",
            headers=actor_headers(actors["alice"]),
            json=submission_body(actors["alice"].user_id, day_type="sunday"),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["request"]["ot_amount"] is None
        assert "No active rate formula" in data["formula_error"]


class TestReads:
    """Test list, grouped and detail endpoints."""

    async def test_get_and_not_found(self, client, actors):
        created = await submit(client, actors["alice"])

        response = await client.get(f"/api/v1/overtime-requests/{created['request_id']}")
        assert response.status_code == 200
        assert response.json()["ticket_number"] == created["ticket_number"]

        missing = await client.get(f"/api/v1/overtime-requests/{uuid4()}")
        assert missing.status_code == 404
        assert missing.json()["code"] == "NOT_FOUND"

    async def test_list_and_grouped(self, client, actors):
        await submit(client, actors["alice"], start="07:00:00", end="08:00:00")
        await submit(client, actors["alice"], start="18:00:00", end="20:00:00")
        await submit(client, actors["bob"])

        listed = (await client.get("/api/v1/overtime-requests")).json()
        assert listed["total"] == 3

        mine = await client.get(
            "/api/v1/overtime-requests", params={"employee_id": str(actors["alice"].user_id)}
        )
        assert mine.json()["total"] == 2

        grouped = (await client.get("/api/v1/overtime-requests/grouped")).json()
        assert len(grouped) == 2
        alice_day = next(g for g in grouped if g["employee_id"] == str(actors["alice"].user_id))
        assert [s["start_time"] for s in alice_day["sessions"]] == ["07:00:00", "18:00:00"]
        assert Decimal(alice_day["total_hours"]) == Decimal("3")
        assert alice_day["is_mixed"] is False

    @pytest.mark.parametrize("path", ["/api/v1/overtime-requests", "/api/v1/overtime-requests/grouped"])
    async def test_unknown_status_filter(self, client, path):
        response = await client.get(path, params={"status": "bogus"})

        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert response.json()["context"] == {"field": "status"}


class TestActions:
    """Test approval action endpoint."""

    async def test_approval_chain_and_recertification(self, client, actors):
        request = await submit(client, actors["alice"])
        ids = [request["request_id"]]

        response = await act(client, actors["supervisor"], ids, "supervisor", "approve")
        assert response.status_code == 200, response.text
        assert response.json()["to_status"] == "supervisor_verified"
        assert response.json()["from_statuses"] == {ids[0]: "pending_verification"}

        assert (await act(client, actors["hr"], ids, "hr", "approve")).json()["to_status"] == "hr_certified"

        bounced = await act(client, actors["bod"], ids, "bod", "reject", "Budget frozen")
        assert bounced.json()["to_status"] == "pending_hr_recertification"

        queue = await client.get(
            "/api/v1/overtime-requests", params={"status": "pending_hr_recertification"}
        )
        assert [r["request_id"] for r in queue.json()["items"]] == ids

        recertified = await act(client, actors["hr"], ids, "hr", "approve", "Budget approved")
        assert recertified.json()["requests"][0]["status"] == "hr_certified"

    async def test_reject_without_remarks(self, client, actors):
        request = await submit(client, actors["alice"])

        response = await act(client, actors["supervisor"], [request["request_id"]], "supervisor", "reject", "  ")

        assert response.status_code == 400
        assert response.json()["code"] == "MISSING_REMARKS"
        current = await client.get(f"/api/v1/overtime-requests/{request['request_id']}")
        assert current.json()["status"] == "pending_verification"

    async def test_invalid_transition_is_conflict(self, client, actors):
        request = await submit(client, actors["alice"])

        response = await act(client, actors["bod"], [request["request_id"]], "management", "approve")

        assert response.status_code == 409
        assert response.json()["context"]["from_status"] == "pending_verification"

    async def test_forbidden_role(self, client, actors):
        request = await submit(client, actors["alice"])

        response = await act(client, actors["alice"], [request["request_id"]], "supervisor", "approve")

        assert response.status_code == 403

    async def test_failed_batch_leaves_no_partial_update(self, client, actors):
        first = await submit(client, actors["alice"])
        second = await submit(client, actors["bob"])
        await act(client, actors["hr"], [second["request_id"]], "hr", "approve")

        response = await act(
            client,
            actors["supervisor"],
            [first["request_id"], second["request_id"]],
            "supervisor",
            "approve",
        )

        assert response.status_code == 409
        current = await client.get(f"/api/v1/overtime-requests/{first['request_id']}")
        assert current.json()["status"] == "pending_verification"

    async def test_empty_batch_rejected(self, client, actors):
        response = await act(client, actors["supervisor"], [], "supervisor", "approve")
        assert response.status_code == 422

    async def test_unknown_role(self, client, actors):
        request = await submit(client, actors["alice"])

        response = await act(client, actors["bod"], [request["request_id"]], "ceo", "approve")

        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert response.json()["context"] == {"field": "role"}

    async def test_terminal_flag(self, client, actors):
        request = await submit(client, actors["alice"])
        assert request["is_terminal"] is False

        response = await act(
            client, actors["supervisor"], [request["request_id"]], "supervisor", "reject", "No"
        )

        assert response.json()["requests"][0]["is_terminal"] is True

    async def test_failed_commit_sends_no_notification(self, app, actors, events, monkeypatch):
        async with AsyncClient(
            transport=ASGITransport(app=app, raise_app_exceptions=False), base_url="http://test"
        ) as client:
            request = await submit(client, actors["alice"])

            async def failing_commit(session):
                raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

            monkeypatch.setattr(AsyncSession, "commit", failing_commit)

            response = await act(
                client, actors["supervisor"], [request["request_id"]], "supervisor", "approve"
            )

            assert response.status_code == 500
            assert response.json()["code"] == "INTERNAL_ERROR"
            assert [e.event_kind.value for e in events] == ["submitted"]

            current = await client.get(f"/api/v1/overtime-requests/{request['request_id']}")
            assert current.json()["status"] == "pending_verification"


class TestResubmission:
    """Test resubmission endpoints."""

    async def test_resubmit_and_history(self, client, actors):
        original = await submit(client, actors["alice"])
        await act(client, actors["supervisor"], [original["request_id"]], "supervisor", "reject", "Wrong date")

        response = await client.post(
            f"/api/v1/overtime-requests/{original['request_id']}/resubmit",
            headers=actor_headers(actors["alice"]),
            json={
                "ot_date": "2026-03-03",
                "start_time": "18:00:00",
                "end_time": "20:00:00",
                "reason": "Corrected date",
            },
        )

        assert response.status_code == 201, response.text
        data = response.json()
        child = data["submission"]["request"]
        assert child["parent_request_id"] == original["request_id"]
        assert child["resubmission_count"] == 1
        assert child["is_resubmission"] is True
        assert data["history"]["rejection_reason"] == "Wrong date"
        assert data["history"]["rejected_by_role"] == "supervisor"

        history = await client.get(f"/api/v1/overtime-requests/{child['request_id']}/history")
        assert history.status_code == 200
        body = history.json()
        assert [r["request_id"] for r in body["chain"]] == [original["request_id"], child["request_id"]]
        assert len(body["history"]) == 1

    async def test_resubmit_pending_request(self, client, actors):
        original = await submit(client, actors["alice"])

        response = await client.post(
            f"/api/v1/overtime-requests/{original['request_id']}/resubmit",
            headers=actor_headers(actors["alice"]),
            json={
                "ot_date": "2026-03-03",
                "start_time": "18:00:00",
                "end_time": "20:00:00",
                "reason": "Again",
            },
        )

        assert response.status_code == 422

    async def test_second_successor_is_conflict(self, client, actors, monkeypatch):
        original = await submit(client, actors["alice"])
        await act(client, actors["supervisor"], [original["request_id"]], "supervisor", "reject", "Wrong date")

        async def no_successor_yet(self, request_id):
            return None

        # Both requests read before either successor was stored
        monkeypatch.setattr(ResubmissionTracker, "_get_successor_id", no_successor_yet)

        statuses = []
        for start, end in (("18:00:00", "20:00:00"), ("06:00:00", "07:00:00")):
            response = await client.post(
                f"/api/v1/overtime-requests/{original['request_id']}/resubmit",
                headers=actor_headers(actors["alice"]),
                json={"ot_date": "2026-03-03", "start_time": start, "end_time": end, "reason": "Fixed"},
            )
            statuses.append(response.status_code)

        assert statuses == [201, 409]
        assert response.json()["code"] == "CONFLICT"


class TestFormulaEndpoints:
    """Test the formula evaluation boundary."""

    async def test_validate(self, client):
        response = await client.post(
            "/api/v1/formulas/validate", json={"formula": "IF(Hours>8, HRP*Hours*1.5, HRP*Hours)"}
        )

        data = response.json()
        assert data["isValid"] is True
        assert data["desugared"] == "(Hours > 8 ? HRP * Hours * 1.5 : HRP * Hours)"

    async def test_validate_unknown(self, client):
        data = (await client.post("/api/v1/formulas/validate", json={"formula": "Hours * Bonus"})).json()

        assert data["isValid"] is False
        assert data["unknownIdentifiers"] == ["Bonus"]
        assert data["desugared"] is None

    async def test_evaluate(self, client):
        response = await client.post(
            "/api/v1/formulas/evaluate",
            json={
                "formula": "IF(Hours>8, Basic/26/8*Hours*1.5, Basic/26/8*Hours)",
                "basicSalary": 2600,
                "hours": 10,
                "dayType": "weekday",
            },
        )

        data = response.json()
        assert data["success"] is True
        assert Decimal(data["orp"]) == Decimal("100")
        assert Decimal(data["hrp"]) == Decimal("12.5")
        assert Decimal(data["otAmount"]) == Decimal("187.5")

    async def test_evaluate_failure_in_body(self, client):
        response = await client.post(
            "/api/v1/formulas/evaluate",
            json={"formula": "HRP / 0", "basicSalary": 2600, "hours": 1},
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": False,
            "orp": None,
            "hrp": None,
            "otAmount": None,
            "breakdown": None,
            "error": "Division by zero",
        }
