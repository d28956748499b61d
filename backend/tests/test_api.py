"""HTTP API tests: records, approvals, and the current actor."""

import pytest

from plantops.auth.permissions import Actor

pytestmark = [pytest.mark.api, pytest.mark.asyncio]


async def _submit_edit(client, headers_for, operator, field="Y"):
    resp = await client.put(
        "/api/records/downtime/r1",
        json={"data": {"field": field}, "reason": "Salah input"},
        headers=headers_for(operator),
    )
    assert resp.status_code == 202
    return resp.json()["request"]


# ── Health / identity ────────────────────────────────────────

async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


async def test_readiness_reports_unreachable_queue(client, data_service):
    data_service.unreachable.add("approval_requests")
    resp = await client.get("/health/ready")
    assert resp.status_code == 503
    assert resp.json()["checks"]["plants"] == ["NPK2", "NPK1"]


async def test_missing_token(client):
    resp = await client.get("/api/me/")
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "HTTP_401"


async def test_garbage_token(client):
    resp = await client.get("/api/me/", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401


async def test_me_reports_capabilities(client, headers_for, operator):
    resp = await client.get("/api/me/", headers=headers_for(operator))
    body = resp.json()
    assert resp.status_code == 200
    assert body["role"] == "user"
    assert body["plant"] == "NPK1"
    assert body["capabilities"]["can_add"] is True
    assert body["capabilities"]["needs_approval_for_edit"] is True
    assert body["capabilities"]["can_edit_direct"] is False


async def test_plant_bound_admin_has_no_users_page(client, headers_for):
    actor = Actor(role="admin", plant="NPK2", display_name="Andi", username="andi")
    resp = await client.get("/api/me/capabilities", headers=headers_for(actor))
    assert resp.json()["can_view_users_page"] is False
    assert resp.json()["can_edit_direct"] is True


# ── Records ──────────────────────────────────────────────────

async def test_cross_plant_viewer_gets_merged_newest_first(client, headers_for, seeded, manager):
    resp = await client.get("/api/records/downtime", headers=headers_for(manager))
    body = resp.json()
    assert resp.status_code == 200
    assert body["total"] == 2
    assert [(r["id"], r["_plant"]) for r in body["items"]] == [("r1", "NPK1"), ("r2", "NPK2")]


async def test_plant_bound_actor_sees_own_plant(client, headers_for, seeded, supervisor):
    resp = await client.get("/api/records/downtime", headers=headers_for(supervisor))
    assert [r["id"] for r in resp.json()["items"]] == ["r1"]


async def test_plant_bound_actor_cannot_read_other_plant(client, headers_for, seeded, supervisor):
    resp = await client.get("/api/records/downtime?plant=NPK2", headers=headers_for(supervisor))
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "PERMISSION_DENIED"


async def test_unknown_entity(client, headers_for, admin):
    resp = await client.get("/api/records/widgets", headers=headers_for(admin))
    assert resp.status_code == 404


async def test_read_failure_is_503(client, headers_for, seeded, supervisor):
    seeded.unreachable.add("downtime_NPK1")
    resp = await client.get("/api/records/downtime", headers=headers_for(supervisor))
    assert resp.status_code == 503
    assert resp.json()["error"]["code"] == "DATA_SERVICE_UNAVAILABLE"


async def test_create_defaults_to_actor_plant(client, headers_for, data_service, operator):
    resp = await client.post(
        "/api/records/gatepass",
        json={"id": "ignored", "noPolisi": "B 1234 CD"},
        headers=headers_for(operator),
    )
    body = resp.json()
    assert resp.status_code == 201
    assert body["status"] == "applied"
    assert body["record"]["_plant"] == "NPK1"
    assert body["record"]["id"] != "ignored"
    assert data_service.partitions["gatepass_NPK1"][0]["noPolisi"] == "B 1234 CD"


async def test_view_only_cannot_create(client, headers_for, data_service, manager):
    resp = await client.post(
        "/api/records/gatepass?plant=NPK2", json={"noPolisi": "X"}, headers=headers_for(manager)
    )
    assert resp.status_code == 403
    assert data_service.calls == []


async def test_direct_edit(client, headers_for, seeded, supervisor):
    resp = await client.put(
        "/api/records/downtime/r1", json={"data": {"field": "Z"}}, headers=headers_for(supervisor)
    )
    assert resp.status_code == 200
    assert resp.json()["record"]["field"] == "Z"


async def test_direct_delete(client, headers_for, seeded, admin):
    resp = await client.delete("/api/records/downtime/r2?plant=NPK2", headers=headers_for(admin))
    assert resp.status_code == 200
    assert seeded.partitions["downtime"] == []


async def test_plant_bound_supervisor_cannot_delete_other_plant(client, headers_for, seeded, supervisor):
    resp = await client.delete("/api/records/downtime/r2?plant=NPK2", headers=headers_for(supervisor))

    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "PERMISSION_DENIED"
    assert [r["id"] for r in seeded.partitions["downtime"]] == ["r2"]


async def test_gated_edit_without_reason(client, headers_for, seeded, operator):
    resp = await client.put(
        "/api/records/downtime/r1", json={"data": {"field": "Y"}}, headers=headers_for(operator)
    )
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_gated_edit_is_pending_not_applied(client, headers_for, seeded, operator):
    request = await _submit_edit(client, headers_for, operator)
    assert request["status"] == "pending"
    assert request["action_type"] == "edit"
    assert request["target_plant"] == "NPK1"
    assert seeded.partitions["downtime_NPK1"][0]["field"] == "X"


async def test_queue_unreachable_on_submit(client, headers_for, seeded, operator):
    seeded.unreachable.add("approval_requests")
    resp = await client.put(
        "/api/records/downtime/r1",
        json={"data": {"field": "Y"}, "reason": "x"},
        headers=headers_for(operator),
    )
    assert resp.status_code == 503
    assert resp.json()["error"]["code"] == "APPROVAL_NOT_RECORDED"


# ── Approvals ────────────────────────────────────────────────

async def test_approve_applies_change(client, headers_for, seeded, operator, admin):
    request = await _submit_edit(client, headers_for, operator)

    resp = await client.post(
        f"/api/approvals/{request['id']}/approve", json={"notes": "OK"}, headers=headers_for(admin)
    )

    body = resp.json()
    assert resp.status_code == 200
    assert body["request"]["status"] == "approved"
    assert body["request"]["resolved_by"] == "admin"
    assert body["record"]["field"] == "Y"
    assert seeded.partitions["downtime_NPK1"][0]["field"] == "Y"

    again = await client.post(f"/api/approvals/{request['id']}/approve", headers=headers_for(admin))
    assert again.status_code == 422
    assert again.json()["error"]["code"] == "NOT_PENDING"


async def test_reject_without_body(client, headers_for, seeded, operator, supervisor):
    resp = await client.delete(
        "/api/records/downtime/r1?reason=Duplikat", headers=headers_for(operator)
    )
    assert resp.status_code == 202
    request_id = resp.json()["request"]["id"]

    resp = await client.post(f"/api/approvals/{request_id}/reject", headers=headers_for(supervisor))

    assert resp.status_code == 200
    assert resp.json()["request"]["status"] == "rejected"
    assert resp.json()["record"] is None
    assert len(seeded.partitions["downtime_NPK1"]) == 1


async def test_requester_cannot_decide(client, headers_for, seeded, operator):
    request = await _submit_edit(client, headers_for, operator)
    resp = await client.post(f"/api/approvals/{request['id']}/approve", headers=headers_for(operator))
    assert resp.status_code == 403


async def test_replay_failure_reports_request_id(client, headers_for, seeded, operator, admin):
    request = await _submit_edit(client, headers_for, operator)
    seeded.unreachable.add("downtime_NPK1")

    resp = await client.post(f"/api/approvals/{request['id']}/approve", headers=headers_for(admin))

    error = resp.json()["error"]
    assert resp.status_code == 503
    assert error["code"] == "APPROVAL_REPLAY_FAILED"
    assert error["details"] == {"request_id": request["id"]}


async def test_unknown_request(client, headers_for, admin):
    resp = await client.post("/api/approvals/missing/approve", headers=headers_for(admin))
    assert resp.status_code == 404


async def test_queue_visibility(client, headers_for, seeded, operator, admin):
    request = await _submit_edit(client, headers_for, operator)
    other = Actor(role="user", plant="NPK1", display_name="Joko", username="joko")

    mine = await client.get("/api/approvals/", headers=headers_for(operator))
    theirs = await client.get("/api/approvals/", headers=headers_for(other))
    everyone = await client.get("/api/approvals/?status=pending", headers=headers_for(admin))

    assert [r["id"] for r in mine.json()["items"]] == [request["id"]]
    assert theirs.json()["total"] == 0
    assert everyone.json()["pending_count"] == 1

    hidden = await client.get(f"/api/approvals/{request['id']}", headers=headers_for(other))
    assert hidden.status_code == 404
    shown = await client.get(f"/api/approvals/{request['id']}", headers=headers_for(operator))
    assert shown.json()["reason"] == "Salah input"
