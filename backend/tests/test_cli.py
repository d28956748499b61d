"""Management CLI tests."""

import pytest

from plantops import cli
from plantops.auth.jwt import decode_token
from plantops.services.data_service import InMemoryDataService
from plantops.services import lifespan


@pytest.mark.unit
def test_routes_lists_partition_per_plant(capsys):
    cli.show_routes("downtime")
    out = capsys.readouterr().out
    assert "NPK2     -> downtime (base)" in out
    assert "NPK1     -> downtime_NPK1" in out


@pytest.mark.unit
def test_issue_token(capsys):
    cli.issue_token("budi", "supervisor", "NPK1")
    payload = decode_token(capsys.readouterr().out.strip())
    assert payload["role"] == "supervisor"
    assert payload["plant"] == "NPK1"


@pytest.mark.unit
def test_pending_lists_only_pending(capsys, monkeypatch):
    service = InMemoryDataService(partitions={"approval_requests": [
        {
            "id": "7", "actionType": "delete", "targetSheet": "kop", "targetId": "k1",
            "targetData": '{"id": "k1", "_plant": "NPK1"}', "reason": "Duplikat",
            "requestedBy": "Sari", "requestedByRole": "user", "requestedByPlant": "NPK1",
            "status": "pending", "requestedAt": "2026-01-01T00:00:00+00:00",
        },
    ]})
    monkeypatch.setattr(lifespan, "build_data_service", lambda: service)

    assert cli.list_pending() == 0
    out = capsys.readouterr().out
    assert "kop/k1 [NPK1]  by Sari" in out
    assert "1 pending request(s)" in out
