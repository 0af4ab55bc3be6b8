import pytest
from fastapi.testclient import TestClient

from fpms.core.security import create_access_token
from fpms.db.session import get_db
from fpms.main import app
from fpms.models.user import User
from fpms.services import evidence_store

PREFIX = "/api/v1"


def _auth(sub, role=None, email=None, **claims):
    payload = {"sub": sub, "email": email or f"{sub}@college.edu", **claims}
    if role:
        payload["role"] = role
    return {"Authorization": f"Bearer {create_access_token(payload)}"}


@pytest.fixture
def client(workflow_config):
    def override_get_db():
        yield workflow_config

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def faculty_headers(workflow_config):
    workflow_config.add(User(id="fac-1", email="fac-1@college.edu", name="Asha", role="faculty"))
    workflow_config.commit()
    return _auth("fac-1")


def _submit(client, headers, **overrides):
    body = {"formId": "form-a", "criteriaId": "crit-1", "taskId": "t1", "claimedScore": 8, "maxMarks": 10}
    body.update(overrides)
    return client.post(f"{PREFIX}/workflow/submissions/task", json=body, headers=headers)


class TestAuth:
    def test_missing_token(self, client):
        resp = client.get(f"{PREFIX}/users/me")
        assert resp.status_code == 401
        assert resp.json() == {"success": False, "message": "No token provided"}

    def test_bad_token(self, client):
        resp = client.get(f"{PREFIX}/users/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401
        assert resp.json()["success"] is False

    def test_role_from_profile(self, client, faculty_headers):
        resp = client.get(f"{PREFIX}/users/me", headers=faculty_headers)
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["role"] == "faculty"
        assert data["roleSource"] == "profile"
        assert data["name"] == "Asha"

    def test_committee_claim(self, client):
        resp = client.get(f"{PREFIX}/users/me", headers=_auth("c-1", committeeMember=True))
        assert resp.json()["data"]["roleKey"] == "committee"

    def test_role_inferred_from_email(self, client):
        resp = client.get(f"{PREFIX}/users/me", headers=_auth("h-9", email="hod.cse@college.edu"))
        data = resp.json()["data"]
        assert data["role"] == "hod"
        assert data["roleSource"] == "email"


class TestWorkflowEndpoints:
    def test_submit_created_then_existing(self, client, faculty_headers):
        first = _submit(client, faculty_headers)
        assert first.status_code == 201
        body = first.json()
        assert body["success"] is True
        assert body["data"]["status"] == "submitted"
        assert body["data"]["activeRoleKeys"] == ["hod"]
        assert body["data"]["assignments"][0]["roleKey"] == "hod"

        again = _submit(client, faculty_headers, claimedScore=2)
        assert again.status_code == 200
        assert again.json()["data"]["claimedScore"] == 8.0

    def test_validation_error_envelope(self, client, faculty_headers):
        resp = client.post(
            f"{PREFIX}/workflow/submissions/task", json={"formId": "form-a"}, headers=faculty_headers
        )
        assert resp.status_code == 400
        assert resp.json()["success"] is False

    def test_no_route_is_400(self, client):
        resp = _submit(client, _auth("p-1", role="principle"))
        assert resp.status_code == 400
        assert resp.json()["message"] == "No submitToRoles configured for current role"

    def test_full_flow(self, client, faculty_headers):
        sub_id = _submit(client, faculty_headers).json()["data"]["id"]
        hod = _auth("hod-1", role="hod")
        principal = _auth("prin-1", role="Principal")
        dean = _auth("dean-1", role="dean")

        queue = client.get(f"{PREFIX}/workflow/submissions/review-queue", headers=hod).json()["data"]
        assert [s["id"] for s in queue] == [sub_id]

        resp = client.post(
            f"{PREFIX}/workflow/submissions/{sub_id}/review", json={"verifiedScore": 7}, headers=hod
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["activeRoleKeys"] == ["principle"]

        again = client.post(f"{PREFIX}/workflow/submissions/{sub_id}/review", json={}, headers=hod)
        assert again.status_code == 400
        assert again.json()["message"] == "This assignment is already reviewed"

        resp = client.post(
            f"{PREFIX}/workflow/submissions/{sub_id}/review", json={"verifiedScore": 7}, headers=principal
        )
        assert resp.json()["data"]["status"] == "approved"

        statuses = client.get(
            f"{PREFIX}/workflow/submissions/my-statuses",
            params={"formId": "form-a", "criteriaId": "crit-1"},
            headers=faculty_headers,
        ).json()["data"]
        assert statuses[0]["status"] == "approved"
        assert statuses[0]["canAppeal"] is True

        forbidden = client.post(
            f"{PREFIX}/workflow/submissions/{sub_id}/appeal", json={"reason": "x"}, headers=hod
        )
        assert forbidden.status_code == 403

        resp = client.post(
            f"{PREFIX}/workflow/submissions/task/appeal",
            json={"formId": "form-a", "criteriaId": "crit-1", "taskId": "t1", "reason": "recount"},
            headers=faculty_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["activeRoleKeys"] == ["dean"]

        resp = client.post(
            f"{PREFIX}/workflow/submissions/{sub_id}/review", json={"verifiedScore": 9}, headers=dean
        )
        assert resp.json()["data"]["status"] == "approved"

        resp = client.post(f"{PREFIX}/workflow/submissions/{sub_id}/accept", headers=faculty_headers)
        assert resp.status_code == 200
        assert resp.json()["data"]["acceptedScore"] == 9.0

        total = client.get(
            f"{PREFIX}/workflow/submissions/user-total", params={"formId": "form-a"}, headers=faculty_headers
        ).json()["data"]
        assert total == {"userId": "fac-1", "formId": "form-a", "totalScore": 9.0, "approvedCount": 1}

        reviewed = client.get(f"{PREFIX}/workflow/submissions/my-reviewed", headers=hod).json()["data"]
        assert [s["id"] for s in reviewed] == [sub_id]

    def test_unknown_submission_is_404(self, client):
        resp = client.post(
            f"{PREFIX}/workflow/submissions/missing/review", json={}, headers=_auth("hod-1", role="hod")
        )
        assert resp.status_code == 404
        assert resp.json() == {"success": False, "message": "Submission not found"}

    def test_my_statuses_requires_query(self, client, faculty_headers):
        resp = client.get(f"{PREFIX}/workflow/submissions/my-statuses", headers=faculty_headers)
        assert resp.status_code == 400


class TestRulesEndpoints:
    def test_read_rules(self, client, faculty_headers):
        data = client.get(f"{PREFIX}/workflow/rules", headers=faculty_headers).json()["data"]
        faculty_rule = next(r for r in data["rules"] if r["role"] == "faculty")
        assert faculty_rule == {"role": "faculty", "submitToRoles": ["hod"], "appealToRoles": ["dean"]}
        assert "hod" in data["roles"]

    def test_only_committee_updates(self, client, faculty_headers):
        body = {"rules": [{"role": "faculty", "submitToRole": "dean"}]}
        resp = client.put(f"{PREFIX}/workflow/rules", json=body, headers=faculty_headers)
        assert resp.status_code == 403

        resp = client.put(f"{PREFIX}/workflow/rules", json=body, headers=_auth("c-1", role="committee"))
        assert resp.status_code == 200
        assert resp.json()["data"]["rules"] == [
            {"role": "faculty", "submitToRoles": ["dean"], "appealToRoles": []}
        ]

    def test_invalid_roles_rejected(self, client):
        body = {"rules": [{"role": "faculty", "submitToRoles": ["registrar"]}]}
        resp = client.put(f"{PREFIX}/workflow/rules", json=body, headers=_auth("s-1", role="superadmin"))
        assert resp.status_code == 400
        assert resp.json()["message"] == "Workflow rules contain invalid roles"

    def test_add_role(self, client):
        admin = _auth("s-1", role="superadmin")
        resp = client.post(f"{PREFIX}/workflow/roles", json={"name": "registrar", "level": 7}, headers=admin)
        assert resp.status_code == 201
        names = [r["name"] for r in client.get(f"{PREFIX}/workflow/roles", headers=admin).json()["data"]]
        assert "registrar" in names


class TestLegacyEndpoints:
    def test_save_verify_appeal_adjudicate(self, client, faculty_headers):
        resp = client.put(
            f"{PREFIX}/modules/module1/subsections/1.1",
            json={"subsectionName": "Teaching", "criteria": [{"name": "Lectures", "claimedScore": 8, "maxScore": 10}]},
            headers=faculty_headers,
        )
        assert resp.status_code == 200

        resp = client.post(
            f"{PREFIX}/modules/module1/owners/fac-1/subsections/1.1/criteria/Lectures/verify",
            json={"reviewerScore": 5},
            headers=_auth("hod-1", role="hod"),
        )
        assert resp.json()["data"]["isVerified"] is True

        resp = client.post(
            f"{PREFIX}/modules/module1/appeals",
            json={"subsectionId": "1.1", "criterionName": "Lectures", "reason": "Missed evidence"},
            headers=faculty_headers,
        )
        assert resp.status_code == 201
        appeal_id = resp.json()["data"]["id"]

        committee = _auth("c-1", role="committee")
        assert client.post(
            f"{PREFIX}/appeals/{appeal_id}/adjudicate", json={"committeeScore": 7}, headers=faculty_headers
        ).status_code == 403

        resp = client.post(f"{PREFIX}/appeals/{appeal_id}/adjudicate", json={"committeeScore": 7}, headers=committee)
        assert resp.json()["data"]["status"] == "committee_verified"

        again = client.post(f"{PREFIX}/appeals/{appeal_id}/adjudicate", json={"committeeScore": 1}, headers=committee)
        assert again.status_code == 400

        subs = client.get(f"{PREFIX}/modules/module1/subsections", headers=faculty_headers).json()["data"]
        assert subs[0]["criteria"][0]["adjudicatedScore"] == 7.0

    def test_faculty_cannot_read_others(self, client, faculty_headers):
        resp = client.get(
            f"{PREFIX}/modules/module1/subsections", params={"ownerId": "fac-2"}, headers=faculty_headers
        )
        assert resp.status_code == 403


class TestEvidenceUpload:
    def test_local_upload(self, client, faculty_headers, tmp_path):
        app.dependency_overrides[evidence_store.get_evidence_store] = lambda: evidence_store.LocalEvidenceStore(
            root=str(tmp_path), base_url="/uploads"
        )
        resp = client.post(
            f"{PREFIX}/workflow/evidence",
            files={"file": ("proof.pdf", b"%PDF-1.4 test", "application/pdf")},
            headers=faculty_headers,
        )
        assert resp.status_code == 201
        url = resp.json()["data"]["url"]
        assert url.startswith("/uploads/task_evidence/") and url.endswith(".pdf")
        assert (tmp_path / url.removeprefix("/uploads/")).read_bytes() == b"%PDF-1.4 test"

    def test_rejects_unknown_extension(self, client, faculty_headers, tmp_path):
        app.dependency_overrides[evidence_store.get_evidence_store] = lambda: evidence_store.LocalEvidenceStore(
            root=str(tmp_path)
        )
        resp = client.post(
            f"{PREFIX}/workflow/evidence",
            files={"file": ("run.exe", b"MZ", "application/octet-stream")},
            headers=faculty_headers,
        )
        assert resp.status_code == 400


class TestHealth:
    def test_live(self, client):
        assert client.get(f"{PREFIX}/health/live").json() == {"status": "ok"}

    def test_db(self, client):
        assert client.get(f"{PREFIX}/health/db").json() == {"status": "ok"}
