# file: backend/test_api.py
"""API endpoint tests — FastAPI app over a temporary sqlite board store.

Tests the HTTP layer: request/response shapes, error-status mapping and
persistence across an app reload. No mocks: the kernel and the sqlite
repository are exercised for real.
"""

import importlib
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient


def _load_app():
    import backend.config
    import backend.main
    importlib.reload(backend.config)
    importlib.reload(backend.main)
    return backend.main


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "board.db")


@pytest.fixture
def client(db_path):
    """Test client on a fresh database; default board id 'yard'."""
    with patch.dict("os.environ", {"BOARD_DB_PATH": db_path, "BOARD_ID": "yard"}):
        main = _load_app()
        yield TestClient(main.app)
        if main._repo is not None:
            main._repo.close()


def _split_equipment(client, job_id="J1"):
    resp = client.post(f"/boards/yard/rows/{job_id}/Equipment/split-row")
    assert resp.status_code == 200
    return resp.json()


# =============================================================================
# HEALTH
# =============================================================================

class TestHealthEndpoint:
    def test_health_returns_200(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "default_board": "yard"}


# =============================================================================
# DROP RULES
# =============================================================================

class TestDropRules:
    def test_list_and_get(self, client):
        rules = client.get("/boards/yard/drop-rules").json()
        by_row = {r["rowType"]: r["allowedTypes"] for r in rules}
        assert by_row["Forman"] == ["foreman"]
        assert "sweeper" in by_row["Equipment"]

        resp = client.get("/boards/yard/drop-rules/Forman")
        assert resp.status_code == 200
        assert resp.json() == {"rowType": "Forman", "allowedTypes": ["foreman"]}

    def test_missing_rule_and_unknown_row(self, client):
        assert client.get("/boards/yard/drop-rules/MPT").status_code == 404
        assert client.get("/boards/yard/drop-rules/Office").status_code == 404

    def test_put_replaces_allow_list(self, client):
        resp = client.put(
            "/boards/yard/drop-rules/MPT",
            json={"allowed_types": ["laborer", "foreman"]},
        )
        assert resp.status_code == 200
        assert resp.json()["allowedTypes"] == ["foreman", "laborer"]
        assert client.get("/boards/yard/drop-rules/MPT").status_code == 200

    def test_put_unknown_type_is_400(self, client):
        resp = client.put("/boards/yard/drop-rules/MPT", json={"allowed_types": ["crane"]})
        assert resp.status_code == 400
        assert client.get("/boards/yard/drop-rules/MPT").status_code == 404


# =============================================================================
# MAGNET RULES / RESOLVER
# =============================================================================

class TestMagnetRules:
    def test_defaults(self, client):
        rules = client.get("/boards/yard/magnet-rules").json()
        assert len(rules) == 16

    def test_put_replaces_table(self, client):
        body = {"rules": [{"source_type": "driver", "target_type": "truck", "max_count": 2}]}
        resp = client.put("/boards/yard/magnet-rules", json=body)
        assert resp.status_code == 200
        assert resp.json() == [{
            "sourceType": "driver", "targetType": "truck",
            "canAttach": True, "isRequired": False, "maxCount": 2,
        }]

    def test_put_rejects_duplicates_and_negative_max(self, client):
        rule = {"source_type": "driver", "target_type": "truck", "max_count": 1}
        resp = client.put("/boards/yard/magnet-rules", json={"rules": [rule, rule]})
        assert resp.status_code == 400
        bad = dict(rule, max_count=-1)
        resp = client.put("/boards/yard/magnet-rules", json={"rules": [bad]})
        assert resp.status_code == 400
        assert len(client.get("/boards/yard/magnet-rules").json()) == 16

    def test_resolve_attachment(self, client):
        url = "/boards/yard/resolve-attachment"
        ok = client.post(url, json={"source_type": "operator", "target_type": "excavator"}).json()
        assert ok == {"eligible": True, "reason": "ok", "maxAllowed": 1, "remaining": 1}

        full = client.post(url, json={
            "source_type": "operator", "target_type": "excavator", "current_count": 1,
        }).json()
        assert full["eligible"] is False and full["reason"] == "capacity_exceeded"

        none = client.post(url, json={"source_type": "truck", "target_type": "paver"}).json()
        assert none["reason"] == "no_rule"

        resp = client.post(url, json={
            "source_type": "operator", "target_type": "paver", "current_count": -1,
        })
        assert resp.status_code == 400

        unknown = client.post(url, json={"source_type": "bogus", "target_type": "excavator"})
        assert unknown.status_code == 400
        unknown = client.post(url, json={"source_type": "operator", "target_type": "bogus"})
        assert unknown.status_code == 400

    def test_attachment_matrix(self, client):
        matrix = client.get("/boards/yard/attachment-matrix").json()
        rules = client.get("/boards/yard/magnet-rules").json()
        assert sum(len(row) for row in matrix.values()) == len(rules)
        assert matrix["operator"]["excavator"] == {
            "eligible": True, "reason": "ok", "maxAllowed": 1, "remaining": 1,
        }

        client.put("/boards/yard/magnet-rules", json={"rules": [
            {"source_type": "driver", "target_type": "truck", "can_attach": False},
        ]})
        matrix = client.get("/boards/yard/attachment-matrix").json()
        assert list(matrix) == ["driver"]
        assert matrix["driver"]["truck"]["reason"] == "attach_forbidden"

    def test_resolve_attachment_in_box(self, client):
        _split_equipment(client)
        client.post("/boards/yard/rows/J1/Equipment/update-box", json={
            "path": [0],
            "updates": {
                "allowed_types": ["paver", "laborer"],
                "attachment_rules": [
                    {"source_type": "laborer", "target_type": "paver", "can_attach": False},
                ],
            },
        })
        decision = client.post("/boards/yard/resolve-attachment", json={
            "source_type": "laborer", "target_type": "paver",
            "job_id": "J1", "row_type": "Equipment", "path": [0],
        }).json()
        assert decision["reason"] == "attach_forbidden"

        resp = client.post("/boards/yard/resolve-attachment", json={
            "source_type": "laborer", "target_type": "paver",
            "job_id": "J1", "row_type": "Equipment", "path": [5],
        })
        assert resp.status_code == 404


# =============================================================================
# ROW LAYOUTS
# =============================================================================

class TestRowOperations:
    def test_unsplit_row_by_default(self, client):
        row = client.get("/boards/yard/rows/J1/Crew").json()
        assert row["isSplit"] is False and row["boxes"] == []

    def test_split_and_update(self, client):
        result = _split_equipment(client)
        assert result["status"] == "applied"
        assert result["config"]["version"] == 1

        resp = client.post("/boards/yard/rows/J1/Equipment/update-box", json={
            "path": [0], "updates": {"allowed_types": ["paver", "operator"]},
        })
        assert resp.json()["status"] == "applied"
        boxes = client.get("/boards/yard/rows/J1/Equipment").json()["boxes"]
        assert boxes[0]["allowedTypes"] == ["operator", "paver"]
        assert "operator" not in boxes[1]["allowedTypes"]

    def test_non_applied_outcomes(self, client):
        _split_equipment(client)
        again = client.post("/boards/yard/rows/J1/Equipment/split-row").json()
        assert again["status"] == "rejected"
        missing = client.post(
            "/boards/yard/rows/J1/Equipment/remove-box", json={"index": 9},
        ).json()
        assert missing["status"] == "invalid_path"
        assert missing["config"]["version"] == 1

    def test_box_tree_operations(self, client):
        _split_equipment(client)
        split = client.post("/boards/yard/rows/J1/Equipment/split-box", json={"path": [0]}).json()
        assert split["status"] == "applied"
        assert split["config"]["boxes"][0]["isSplit"] is True
        merged = client.post("/boards/yard/rows/J1/Equipment/unsplit-box", json={"path": [0]}).json()
        assert merged["status"] == "applied"
        added = client.post("/boards/yard/rows/J1/Equipment/add-box", json={"name": "Spare"}).json()
        assert added["config"]["boxes"][-1]["name"] == "Spare"
        assert added["config"]["version"] == 4

    def test_upsert_box_rule(self, client):
        _split_equipment(client)
        url = "/boards/yard/rows/J1/Equipment/upsert-box-rule"
        client.post("/boards/yard/rows/J1/Equipment/update-box", json={
            "path": [0], "updates": {"allowed_types": ["paver", "operator"]},
        })
        rule = {"source_type": "operator", "target_type": "paver", "is_auto_attach": True}
        resp = client.post(url, json={"path": [0], "rule": rule})
        assert resp.status_code == 200
        assert resp.json()["status"] == "applied"
        assert resp.json()["config"]["boxes"][0]["attachmentRules"] == [{
            "sourceType": "operator", "targetType": "paver",
            "canAttach": True, "isAutoAttach": True, "priority": 1,
        }]

        # same pair replaces in place
        resp = client.post(url, json={"path": [0], "rule": {**rule, "can_attach": False}})
        rules = resp.json()["config"]["boxes"][0]["attachmentRules"]
        assert len(rules) == 1 and rules[0]["canAttach"] is False

        assert client.post(url, json={"path": [0]}).status_code == 422
        assert client.post(url, json={"path": [9], "rule": rule}).json()["status"] == "invalid_path"
        outside = {"source_type": "laborer", "target_type": "paver"}
        assert client.post(url, json={"path": [0], "rule": outside}).status_code == 422
        bogus = {"source_type": "bogus", "target_type": "paver"}
        assert client.post(url, json={"path": [0], "rule": bogus}).status_code == 422

        client.post("/boards/yard/rows/J1/Equipment/split-box", json={"path": [1]})
        split = client.post(url, json={"path": [1], "rule": rule}).json()
        assert split["status"] == "rejected"

    def test_errors(self, client):
        _split_equipment(client)
        resp = client.post("/boards/yard/rows/J1/Equipment/update-box", json={
            "path": [0], "updates": {"max_count": -1},
        })
        assert resp.status_code == 422
        assert client.post("/boards/yard/rows/J1/Equipment/explode").status_code == 404
        assert client.post("/boards/yard/rows/J1/Office/split-row").status_code == 404
        assert client.post("/boards/yard/rows/J1/Equipment/remove-box").status_code == 422

    def test_can_drop(self, client):
        url = "/boards/yard/rows/J1/Forman/can-drop"
        assert client.post(url, json={"resource_type": "foreman"}).json() == {
            "allowed": True, "reason": "ok",
        }
        assert client.post(url, json={"resource_type": "paver"}).json()["reason"] == "type_not_allowed"

        _split_equipment(client)
        url = "/boards/yard/rows/J1/Equipment/can-drop"
        assert client.post(url, json={"resource_type": "paver"}).json()["reason"] == "row_is_split"
        assert client.post(url, json={"resource_type": "paver", "path": [0]}).json()["allowed"] is True
        assert client.post(url, json={"resource_type": "paver", "path": [1]}).json()["reason"] == "type_not_allowed"
        assert client.post(url, json={"resource_type": "paver", "path": [7]}).json()["reason"] == "invalid_path"


# =============================================================================
# JOB TYPES
# =============================================================================

class TestJobTypes:
    def test_list_and_get(self, client):
        ids = [jt["id"] for jt in client.get("/boards/yard/job-types").json()]
        assert len(ids) == 7 and ids == sorted(ids)
        assert client.get("/boards/yard/job-types/paving").json()["name"] == "Paving"
        assert client.get("/boards/yard/job-types/nope").status_code == 404

    def test_required_must_be_allowed(self, client):
        resp = client.post("/boards/yard/job-types/paving/rows/2/required", json={"add": ["paver"]})
        assert resp.status_code == 422

        client.post("/boards/yard/job-types/paving/rows/2/allowed", json={"add": ["foreman"]})
        resp = client.post("/boards/yard/job-types/paving/rows/2/required", json={"add": ["foreman"]})
        assert resp.status_code == 200
        row = resp.json()["defaultRows"][2]
        assert "foreman" in row["requiredResources"]

        resp = client.post("/boards/yard/job-types/paving/rows/2/allowed", json={"remove": ["foreman"]})
        row = resp.json()["defaultRows"][2]
        assert "foreman" not in row["allowedResources"]
        assert "foreman" not in row["requiredResources"]

    def test_row_settings(self, client):
        resp = client.patch("/boards/yard/job-types/paving/rows/3", json={
            "enabled": False, "max_count": 6, "display_name": "Haul",
        })
        assert resp.status_code == 200
        row = resp.json()["defaultRows"][3]
        assert row["enabled"] is False and row["maxCount"] == 6
        assert client.patch("/boards/yard/job-types/paving/rows/40", json={"enabled": True}).status_code == 422
        assert client.patch("/boards/yard/job-types/nope/rows/0", json={"max_count": 1}).status_code == 404


# =============================================================================
# ANALYSIS
# =============================================================================

class TestAnalysis:
    def test_health_report(self, client):
        resp = client.post("/boards/yard/health", json={"job_type_ids": ["drainage"]})
        assert resp.status_code == 200
        report = resp.json()
        assert report["issues"][0] == "No resources configured"
        assert report["coverage"] == 0

        inventory = [
            {"id": f"r{i}", "type": t}
            for i, t in enumerate(["foreman", "excavator", "operator", "laborer", "truck", "driver"])
        ]
        report = client.post("/boards/yard/health", json={
            "job_type_ids": ["drainage"], "inventory": inventory,
        }).json()
        assert report["issues"] == [] and report["coveragePercent"] == 100

    def test_rule_report(self, client):
        report = client.get("/boards/yard/rule-report").json()
        assert report["magnetValidation"]["isValid"] is True


# =============================================================================
# SETTINGS BUNDLE / PERSISTENCE
# =============================================================================

class TestSettings:
    def test_export_import_between_boards(self, client):
        _split_equipment(client)
        exported = client.get("/boards/yard/export")
        assert exported.status_code == 200
        bundle = exported.json()
        assert bundle["formatVersion"] == 1

        resp = client.post("/boards/copy/import", json=bundle)
        assert resp.status_code == 200
        assert client.get("/boards/copy/rows/J1/Equipment").json()["isSplit"] is True
        assert client.get("/boards/copy/export").text == exported.text

    def test_bad_import_is_400_and_changes_nothing(self, client):
        before = client.get("/boards/yard/export").text
        resp = client.post("/boards/yard/import", json={"formatVersion": 2})
        assert resp.status_code == 400
        assert client.get("/boards/yard/export").text == before

    def test_state_survives_restart(self, client, db_path):
        _split_equipment(client)
        with patch.dict("os.environ", {"BOARD_DB_PATH": db_path, "BOARD_ID": "yard"}):
            main = _load_app()
            fresh = TestClient(main.app)
            row = fresh.get("/boards/yard/rows/J1/Equipment").json()
            assert row["isSplit"] is True and row["version"] == 1
            main._repo.close()
