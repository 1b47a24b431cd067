from types import SimpleNamespace

import pytest
from flask import Flask

from src.timesheet_sync.timesheet_sync.coherence.controller import register as register_coherence
from src.timesheet_sync.timesheet_sync.imports.controller import register as register_imports
from src.timesheet_sync.timesheet_sync.main import register_error_handlers
from src.timesheet_sync.timesheet_sync.policy.controller import register as register_policy
from src.timesheet_sync.timesheet_sync.sync.controller import register as register_sync
from tests.fakes import DAY, TENANT, build_services, make_entry, make_presence

BASE = f"/api/tenants/{TENANT}"


@pytest.fixture
def api():
    services = build_services([make_presence("p1", "E1")], [make_entry("e1", 300, "E1"), make_entry("e2", 480, "E2")])
    app = Flask(__name__)
    register_error_handlers(app)
    container = SimpleNamespace(**vars(services))
    for register in (register_policy, register_imports, register_coherence, register_sync):
        register(app, container)
    return SimpleNamespace(client=app.test_client(), services=services)


def test_policy_roundtrip(api):
    response = api.client.patch(
        f"{BASE}/policy", json={"changes": {"time_difference_tolerance": 30}, "performed_by": "admin"}
    )

    assert response.status_code == 200
    assert api.client.get(f"{BASE}/policy").get_json()["time_difference_tolerance"] == 30


def test_validation_errors_are_400(api):
    response = api.client.patch(f"{BASE}/policy", json={"changes": {"enabled": "maybe"}, "performed_by": "admin"})

    assert response.status_code == 400
    assert "enabled" in response.get_json()["error"]
    assert api.client.post(f"{BASE}/sync", json={"performed_by": "bot"}).status_code == 400


def test_import_job_lifecycle(api):
    response = api.client.post(
        f"{BASE}/import-jobs", json={"start": DAY, "end": DAY, "performed_by": "admin", "import_kind": "pre_fill"}
    )

    assert response.status_code == 202
    job_id = response.get_json()["job_id"]
    job = api.client.get(f"{BASE}/import-jobs/{job_id}").get_json()
    assert job["status"] == "completed"
    assert api.client.get(f"{BASE}/import-jobs/statistics").get_json()["total_jobs"] == 1
    cancel = api.client.post(f"{BASE}/import-jobs/{job_id}/cancel", json={"performed_by": "admin"})
    assert cancel.get_json() == {"job_id": job_id, "cancelled": False}


def test_unknown_job_is_404(api):
    response = api.client.get(f"{BASE}/import-jobs/missing")

    assert response.status_code == 404
    assert "missing" in response.get_json()["error"]


def test_coherence_check_issue_flow(api):
    response = api.client.post(
        f"{BASE}/coherence/checks", json={"start": DAY, "end": DAY, "performed_by": "auditor"}
    )
    assert response.status_code == 202

    issues = api.client.get(f"{BASE}/coherence/issues?type=missing_presence").get_json()
    assert [i["employee_id"] for i in issues] == ["E2"]

    fixed = api.client.post(
        f"{BASE}/coherence/issues/{issues[0]['issue_id']}/auto-fix", json={"performed_by": "auditor"}
    ).get_json()
    assert fixed["fixed"] is True

    mismatch = api.client.get(f"{BASE}/coherence/issues?type=time_mismatch").get_json()[0]
    resolved = api.client.post(
        f"{BASE}/coherence/issues/{mismatch['issue_id']}/resolve",
        json={"status": "ignored", "performed_by": "lead", "notes": "training day"},
    ).get_json()
    assert resolved["status"] == "ignored"

    stats = api.client.get(f"{BASE}/coherence/statistics").get_json()
    assert stats["resolution_rate"] == 100.0


def test_bad_issue_filter_is_400(api):
    assert api.client.get(f"{BASE}/coherence/issues?severity=huge").status_code == 400


def test_sync_and_reconcile(api):
    result = api.client.post(
        f"{BASE}/sync", json={"start": DAY, "end": DAY, "performed_by": "bot", "direction": "presence_to_timesheet"}
    ).get_json()
    assert result["status"] == "success"

    pending = api.client.get(f"{BASE}/sync/conflicts").get_json()
    assert len(pending) == 1

    outcome = api.client.post(
        f"{BASE}/sync/conflicts/reconcile", json={"performed_by": "lead", "strategy": "timesheet_priority"}
    ).get_json()
    assert outcome["resolved"] == 1
    assert api.client.get(f"{BASE}/sync/conflicts").get_json() == []
