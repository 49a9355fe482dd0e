"""Tests for the /api/scheduling-rules endpoints."""

import pytest

from schedulesync.models import SchedulingRule, User

BASE = "/api/scheduling-rules"


class TestListAndCreate:
    def test_empty(self, client):
        assert client.get(BASE).json() == {"rules": []}

    def test_create(self, client, db):
        response = client.post(
            BASE,
            json={
                "name": "  Acme is long  ",
                "trigger_type": "domain",
                "trigger_value": "acme.com",
                "action_type": "set_duration",
                "action_value": "45",
                "priority": 3,
            },
        )
        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "Acme is long"
        assert body["is_active"] is True
        assert db.query(SchedulingRule).one().priority == 3

    def test_listed_by_priority(self, client, make_rule):
        make_rule("all", None, "add_note", "low", name="low", priority=1)
        make_rule("all", None, "add_note", "high", name="high", priority=5)
        names = [r["name"] for r in client.get(BASE).json()["rules"]]
        assert names == ["high", "low"]

    def test_trigger_value_required(self, client):
        response = client.post(
            BASE,
            json={"name": "Bad", "trigger_type": "domain", "action_type": "block"},
        )
        assert response.status_code == 422

    def test_unknown_action_type(self, client):
        response = client.post(
            BASE,
            json={"name": "Bad", "trigger_type": "all", "action_type": "teleport"},
        )
        assert response.status_code == 422

    @pytest.mark.parametrize(
        "trigger_type, trigger_value, action_type, action_value",
        [
            ("time_after", "17:00", "block", "true"),
            ("time_before", "25", "block", "true"),
            ("all", None, "set_duration", "forty"),
            ("all", None, "set_duration", None),
            ("all", None, "set_buffer", "-5"),
        ],
    )
    def test_numeric_values_must_be_whole_numbers(
        self, client, db, trigger_type, trigger_value, action_type, action_value
    ):
        response = client.post(
            BASE,
            json={
                "name": "Bad",
                "trigger_type": trigger_type,
                "trigger_value": trigger_value,
                "action_type": action_type,
                "action_value": action_value,
            },
        )
        assert response.status_code == 422
        assert db.query(SchedulingRule).count() == 0


class TestFromText:
    def test_creates_rule(self, client, db):
        response = client.post(f"{BASE}/from-text", json={"rule_text": "No meetings on Fridays"})
        assert response.status_code == 200
        rule = response.json()["rule"]
        assert rule["trigger_type"] == "day_of_week"
        assert rule["trigger_value"] == "friday"
        assert db.query(SchedulingRule).count() == 1

    def test_unparseable_text(self, client, db):
        response = client.post(f"{BASE}/from-text", json={"rule_text": "make it nice please"})
        assert response.status_code == 400
        assert db.query(SchedulingRule).count() == 0

    def test_too_short(self, client):
        assert client.post(f"{BASE}/from-text", json={"rule_text": "hi"}).status_code == 422

    def test_parse_preview_does_not_save(self, client, db):
        response = client.post(f"{BASE}/parse", json={"rule_text": "Auto-approve meetings from acme.com"})
        assert response.json()["parsed"]["action_type"] == "auto_approve"
        assert db.query(SchedulingRule).count() == 0

    def test_parse_preview_unrecognised(self, client):
        assert client.post(f"{BASE}/parse", json={"rule_text": "hello world"}).json() == {"parsed": None}


class TestUpdateToggleDelete:
    def test_update(self, client, make_rule):
        rule = make_rule("domain", "acme.com", "set_duration", "45")
        response = client.patch(f"{BASE}/{rule.id}", json={"action_value": "60", "priority": 2})
        assert response.json()["action_value"] == "60"
        assert response.json()["priority"] == 2
        assert response.json()["trigger_value"] == "acme.com"

    def test_update_checks_value_against_existing_type(self, client, db, make_rule):
        rule = make_rule("domain", "acme.com", "set_duration", "45")
        response = client.patch(f"{BASE}/{rule.id}", json={"action_value": "abc"})
        assert response.status_code == 422
        db.refresh(rule)
        assert rule.action_value == "45"

    def test_update_checks_new_type_with_new_value(self, client, make_rule):
        rule = make_rule("all", None, "add_note", "hi")
        response = client.patch(
            f"{BASE}/{rule.id}", json={"action_type": "set_buffer", "action_value": "soon"}
        )
        assert response.status_code == 422

    def test_toggle(self, client, make_rule):
        rule = make_rule("all", None, "block", "true")
        assert client.patch(f"{BASE}/{rule.id}/toggle").json()["rule"]["is_active"] is False
        assert client.patch(f"{BASE}/{rule.id}/toggle").json()["rule"]["is_active"] is True

    def test_delete(self, client, db, make_rule):
        rule = make_rule("all", None, "block", "true")
        assert client.delete(f"{BASE}/{rule.id}").json() == {"success": True}
        assert db.query(SchedulingRule).count() == 0

    def test_missing_rule(self, client):
        assert client.patch(f"{BASE}/999/toggle").status_code == 404
        assert client.delete(f"{BASE}/999").status_code == 404

    def test_other_users_rule_is_hidden(self, client, db):
        other = User(firebase_uid="firebase-other", email="other@example.com")
        db.add(other)
        db.commit()
        rule = SchedulingRule(
            user_id=other.id, name="theirs", trigger_type="all", action_type="block", action_value="true"
        )
        db.add(rule)
        db.commit()

        assert client.delete(f"{BASE}/{rule.id}").status_code == 404
        assert client.get(BASE).json() == {"rules": []}


class TestHealth:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}
