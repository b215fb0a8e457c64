from models import LogEventType


def _log(client, action_id, headers, **body):
    body.setdefault("event_type", "note")
    return client.post(f"/api/moderation/actions/{action_id}/logs", json=body, headers=headers)


def test_create_log_defaults_actor_to_caller(client, make_action, world):
    a = make_action()
    r = _log(client, a["id"], world.mod_h, event_type=LogEventType.ACTION_TAKEN.value, event_details="warned in DM")
    assert r.status_code == 201
    entry = r.get_json()["data"]
    assert entry["related_action_id"] == a["id"]
    assert entry["actor_member_id"] == world.mod_member
    assert entry["event_type"] == "action_taken"


def test_free_form_event_type_but_not_empty(client, make_action, world):
    a = make_action()
    assert _log(client, a["id"], world.admin_h, event_type="custom_escalation_ping").status_code == 201
    assert _log(client, a["id"], world.admin_h, event_type="").status_code == 400
    assert _log(client, a["id"], world.admin_h, event_type="x", related_action_id=5).status_code == 400


def test_create_log_checks_parent_and_actor(client, make_action, world):
    a = make_action()
    assert _log(client, 999, world.mod_h).status_code == 404
    assert _log(client, a["id"], world.mod_h, actor_member_id=999).status_code == 404
    ok = _log(client, a["id"], world.mod_h, actor_member_id=world.z)
    assert ok.get_json()["data"]["actor_member_id"] == world.z
    assert _log(client, a["id"], world.z_h).status_code == 403


def test_index_is_scoped_to_path_action(client, make_action, world):
    a = make_action()
    b = make_action(action_type="mute")
    _log(client, a["id"], world.mod_h)
    _log(client, a["id"], world.mod2_h)
    _log(client, a["id"], world.mod_h, event_type="status_update")
    _log(client, b["id"], world.mod_h)

    r = client.get(f"/api/moderation/actions/{a['id']}/logs?actor_member_id={world.mod_member}",
                   headers=world.admin_h)
    body = r.get_json()
    assert body["pagination"]["records"] == 2
    assert all(e["actor_member_id"] == world.mod_member for e in body["data"])
    assert all(e["related_action_id"] == a["id"] for e in body["data"])

    # a smuggled related_action_id never widens the scope
    smuggled = client.get(f"/api/moderation/actions/{a['id']}/logs?related_action_id={b['id']}",
                          headers=world.admin_h).get_json()
    assert smuggled["pagination"]["records"] == 3
    assert {e["related_action_id"] for e in smuggled["data"]} == {a["id"]}

    nobody = client.get(f"/api/moderation/actions/{a['id']}/logs?actor_member_id={world.w}",
                        headers=world.admin_h).get_json()
    assert nobody["pagination"]["records"] == 0
    assert nobody["data"] == []

    by_type = client.get(f"/api/moderation/actions/{a['id']}/logs?event_type=status_update",
                         headers=world.admin_h).get_json()
    assert by_type["pagination"]["records"] == 1


def test_get_log_under_wrong_action_is_not_found(client, make_action, world):
    a = make_action()
    b = make_action(action_type="mute")
    log_a = _log(client, a["id"], world.mod_h).get_json()["data"]

    assert client.get(f"/api/moderation/actions/{a['id']}/logs/{log_a['id']}",
                      headers=world.admin_h).status_code == 200
    r = client.get(f"/api/moderation/actions/{b['id']}/logs/{log_a['id']}", headers=world.admin_h)
    assert r.status_code == 404
    assert "event_type" not in (r.get_json().get("data") or {})


def test_update_log_details_only(client, make_action, world):
    a = make_action()
    entry = _log(client, a["id"], world.mod_h, event_details="typo").get_json()["data"]
    url = f"/api/moderation/actions/{a['id']}/logs/{entry['id']}"

    r = client.patch(url, json={"event_details": "fixed"}, headers=world.mod_h)
    assert r.status_code == 200
    out = r.get_json()["data"]
    assert out["event_details"] == "fixed"
    assert out["event_type"] == entry["event_type"]
    assert out["created_at"] == entry["created_at"]

    for patch in ({"event_type": "status_update"}, {"actor_member_id": world.z}, {"related_action_id": 1}):
        assert client.patch(url, json=patch, headers=world.mod_h).status_code == 400

    assert client.patch(url, json={"event_details": "nope"}, headers=world.mod2_h).status_code == 403
    assert client.patch(url, json={"event_details": "admin fix"}, headers=world.admin_h).status_code == 200
