"""End-to-end walk through escalation, action, appeal and audit log scoping."""
from conftest import auth_header, seed_member


def test_escalate_act_appeal_resolve(client, token_for):
    y = seed_member("admin-y")
    x = seed_member("member-x")
    z = seed_member("member-z")
    y_h, x_h, z_h = (auth_header(token_for(m)) for m in (y, x, z))

    assert client.post("/api/admin/administrators/join", headers=y_h).status_code == 201
    grant = client.put(f"/api/admin/members/{x}/moderator", headers=y_h).get_json()["data"]

    # A: moderator M warns Z
    action = client.post("/api/moderation/actions", json={
        "moderator_id": grant["id"], "action_type": "warn",
        "target_member_id": z, "action_reason": "spam",
    }, headers=x_h).get_json()["data"]
    assert action["status"] == "active"
    assert action["moderator_id"] == grant["id"]
    log = client.post(f"/api/moderation/actions/{action['id']}/logs",
                      json={"event_type": "action_taken", "event_details": "warned"},
                      headers=x_h).get_json()["data"]

    # B: Z appeals
    appeal = client.post("/api/appeals", json={
        "moderation_action_id": action["id"], "appeal_rationale": "not spam",
    }, headers=z_h).get_json()["data"]
    assert appeal["status"] == "pending"
    url = f"/api/appeals/{appeal['id']}"

    # C: into review
    c = client.patch(url, json={"status": "in_review"}, headers=y_h).get_json()["data"]
    assert c["status"] == "in_review"
    assert c["resolved_at"] is None

    # D: accepted with notes
    d = client.patch(url, json={"status": "accepted", "resolution_notes": "reviewed, overturned"},
                     headers=y_h).get_json()["data"]
    assert d["status"] == "accepted"
    assert d["resolved_at"] is not None
    assert d["appeal_rationale"] == "not spam"

    # E: terminal
    e = client.patch(url, json={"status": "dismissed", "resolution_notes": "changed my mind"}, headers=y_h)
    assert e.status_code == 409
    assert e.get_json()["error"]["code"] == "CONFLICT"

    # F: an unrelated action/log pair does not expose the appeal's log
    other = client.post("/api/moderation/actions", json={
        "moderator_id": grant["id"], "action_type": "mute",
        "target_member_id": y, "action_reason": "flooding",
    }, headers=x_h).get_json()["data"]
    client.post(f"/api/moderation/actions/{other['id']}/logs", json={"event_type": "note"}, headers=x_h)

    f = client.get(f"/api/moderation/actions/{other['id']}/logs/{log['id']}", headers=y_h)
    assert f.status_code == 404
    assert f.get_json()["error"]["code"] == "NOT_FOUND"
    own = client.get(f"/api/moderation/actions/{action['id']}/logs/{log['id']}", headers=y_h)
    assert own.get_json()["data"]["event_details"] == "warned"
