from sqlalchemy import func, select

from conftest import seed_post
from models import ModerationAction, ModerationLog
from utils.db import get_session


def _count_actions() -> int:
    with get_session() as s:
        return s.scalar(select(func.count()).select_from(ModerationAction))


def test_create_action(make_action, world):
    a = make_action(decision_narrative="third strike", details="links to casino")
    assert a["status"] == "active"
    assert a["moderator_id"] == world.mod_id
    assert a["target_member_id"] == world.z
    assert a["created_at"] == a["updated_at"]
    assert a["effective_from"] is not None
    assert a["effective_until"] is None
    assert a["decision_narrative"] == "third strike"


def test_non_moderator_cannot_create_and_nothing_is_persisted(client, world):
    body = {"moderator_id": world.mod_id, "action_type": "warn",
            "target_member_id": world.w, "action_reason": "spam"}
    for h in (world.z_h, world.admin_h):
        r = client.post("/api/moderation/actions", json=body, headers=h)
        assert r.status_code == 403
    assert _count_actions() == 0


def test_cannot_act_under_another_moderators_grant(client, world):
    r = client.post("/api/moderation/actions", json={
        "moderator_id": world.mod2_id, "action_type": "warn",
        "target_member_id": world.z, "action_reason": "spam",
    }, headers=world.mod_h)
    assert r.status_code == 403
    assert _count_actions() == 0


def test_revoked_moderator_is_forbidden(client, world):
    client.post(f"/api/admin/moderators/{world.mod_id}/revoke", headers=world.admin_h)
    r = client.post("/api/moderation/actions", json={
        "moderator_id": world.mod_id, "action_type": "mute",
        "target_member_id": world.z, "action_reason": "flooding",
    }, headers=world.mod_h)
    assert r.status_code == 403


def test_create_validation(client, world):
    base = {"moderator_id": world.mod_id, "action_type": "warn", "action_reason": "spam"}
    no_target = client.post("/api/moderation/actions", json=base, headers=world.mod_h)
    assert no_target.status_code == 400

    empty_reason = client.post("/api/moderation/actions",
                               json={**base, "target_member_id": world.z, "action_reason": "   "},
                               headers=world.mod_h)
    assert empty_reason.status_code == 400
    assert empty_reason.get_json()["error"]["details"]["field"] == "action_reason"

    bad_type = client.post("/api/moderation/actions",
                           json={**base, "target_member_id": world.z, "action_type": "nuke"},
                           headers=world.mod_h)
    assert bad_type.status_code == 400

    window = client.post("/api/moderation/actions", json={
        **base, "target_member_id": world.z,
        "effective_from": "2026-01-02T00:00:00Z", "effective_until": "2026-01-01T00:00:00Z",
    }, headers=world.mod_h)
    assert window.status_code == 400

    unknown_key = client.post("/api/moderation/actions",
                              json={**base, "target_member_id": world.z, "severity": 9},
                              headers=world.mod_h)
    assert unknown_key.status_code == 400
    assert _count_actions() == 0


def test_targets_must_exist(client, world):
    base = {"moderator_id": world.mod_id, "action_type": "remove_content", "action_reason": "gore"}
    assert client.post("/api/moderation/actions", json={**base, "target_post_id": 999},
                       headers=world.mod_h).status_code == 404
    assert client.post("/api/moderation/actions", json={**base, "target_comment_id": 999},
                       headers=world.mod_h).status_code == 404
    deleted = seed_post(world.w, deleted=True)
    assert client.post("/api/moderation/actions", json={**base, "target_post_id": deleted},
                       headers=world.mod_h).status_code == 404

    ok = client.post("/api/moderation/actions",
                     json={**base, "target_post_id": world.post, "target_comment_id": world.comment},
                     headers=world.mod_h)
    assert ok.status_code == 201


def test_owner_updates_and_updated_at_moves(client, make_action, world):
    a = make_action()
    r = client.patch(f"/api/moderation/actions/{a['id']}", json={
        "decision_narrative": "confirmed after review",
        "effective_until": "2099-01-01T00:00:00+00:00",
    }, headers=world.mod_h)
    assert r.status_code == 200
    out = r.get_json()["data"]
    assert out["decision_narrative"] == "confirmed after review"
    assert out["effective_until"].startswith("2099-01-01")
    assert out["updated_at"] >= a["updated_at"]
    assert out["created_at"] == a["created_at"]
    assert out["action_type"] == "warn"


def test_other_moderator_cannot_update_but_admin_can(client, make_action, world):
    a = make_action()
    r = client.patch(f"/api/moderation/actions/{a['id']}", json={"details": "x"}, headers=world.mod2_h)
    assert r.status_code == 403
    r = client.patch(f"/api/moderation/actions/{a['id']}", json={"status": "completed"}, headers=world.admin_h)
    assert r.status_code == 200
    assert r.get_json()["data"]["status"] == "completed"


def test_update_rejects_immutable_fields(client, make_action, world):
    a = make_action()
    for patch in ({"action_type": "ban_user"}, {"moderator_id": world.mod2_id}, {"target_member_id": world.w}):
        r = client.patch(f"/api/moderation/actions/{a['id']}", json=patch, headers=world.mod_h)
        assert r.status_code == 400
    assert client.patch("/api/moderation/actions/999", json={"details": "x"},
                        headers=world.mod_h).status_code == 404


def test_status_transitions(client, make_action, world):
    a = make_action()
    url = f"/api/moderation/actions/{a['id']}"
    assert client.patch(url, json={"status": "paused"}, headers=world.mod_h).status_code == 400
    assert client.patch(url, json={"status": "active"}, headers=world.mod_h).status_code == 200
    assert client.patch(url, json={"status": "reversed"}, headers=world.mod_h).status_code == 200
    r = client.patch(url, json={"status": "active"}, headers=world.mod_h)
    assert r.status_code == 409
    assert r.get_json()["error"]["details"]["from"] == "reversed"


def test_erase_twice(client, make_action, world):
    a = make_action()
    client.post(f"/api/moderation/actions/{a['id']}/logs",
                json={"event_type": "action_taken"}, headers=world.mod_h)

    assert client.delete(f"/api/moderation/actions/{a['id']}", headers=world.mod_h).status_code == 403
    first = client.delete(f"/api/moderation/actions/{a['id']}", headers=world.admin_h)
    assert first.status_code == 200
    second = client.delete(f"/api/moderation/actions/{a['id']}", headers=world.admin_h)
    assert second.status_code == 404

    assert client.get(f"/api/moderation/actions/{a['id']}", headers=world.admin_h).status_code == 404
    assert client.get(f"/api/moderation/actions/{a['id']}/logs", headers=world.admin_h).status_code == 404
    with get_session() as s:
        assert s.scalar(select(func.count()).select_from(ModerationLog)) == 0


def test_get_requires_staff(client, make_action, world):
    a = make_action()
    assert client.get(f"/api/moderation/actions/{a['id']}", headers=world.z_h).status_code == 403
    full = client.get(f"/api/moderation/actions/{a['id']}", headers=world.mod2_h).get_json()["data"]
    assert full["action_reason"] == "spam"


def test_list_filters_and_summaries(client, make_action, world):
    make_action()
    make_action(action_type="mute", target_member_id=world.w)
    make_action(action_type="remove_content", target_member_id=None, target_post_id=world.post)
    make_action(headers=world.mod2_h, moderator_id=world.mod2_id, action_reason="rude")

    r = client.get("/api/moderation/actions", headers=world.admin_h)
    body = r.get_json()
    assert body["pagination"] == {"current": 1, "limit": 20, "records": 4, "pages": 1}
    assert "action_reason" not in body["data"][0]
    assert "decision_narrative" not in body["data"][0]

    mine = client.get(f"/api/moderation/actions?moderator_id={world.mod_id}", headers=world.mod_h).get_json()
    assert mine["pagination"]["records"] == 3

    mutes = client.get("/api/moderation/actions?action_type=mute", headers=world.mod_h).get_json()
    assert [a["target_member_id"] for a in mutes["data"]] == [world.w]

    on_post = client.get(f"/api/moderation/actions?target_post_id={world.post}", headers=world.mod_h).get_json()
    assert on_post["pagination"]["records"] == 1

    none = client.get("/api/moderation/actions?status=reversed", headers=world.mod_h).get_json()
    assert none["pagination"]["records"] == 0
    assert none["data"] == []

    future = client.get("/api/moderation/actions?created_from=2999-01-01T00:00:00Z", headers=world.mod_h).get_json()
    assert future["pagination"]["records"] == 0

    asc = client.get("/api/moderation/actions?sort_by=created_at&sort_direction=asc&limit=2",
                     headers=world.mod_h).get_json()
    assert asc["pagination"]["pages"] == 2
    assert asc["data"][0]["id"] < asc["data"][1]["id"]


def test_list_rejects_malformed_filters(client, world):
    for q in ("page=0", "page=abc", "limit=0", "limit=101", "action_type=nuke",
              "status=paused", "created_from=yesterday", "sort_by=nickname",
              "moderator_id=-3"):
        r = client.get(f"/api/moderation/actions?{q}", headers=world.mod_h)
        assert r.status_code == 400, q
    assert client.get("/api/moderation/actions", headers=world.z_h).status_code == 403


def test_reads_are_repeatable(client, make_action, world):
    make_action()
    make_action(action_type="mute")
    first = client.get("/api/moderation/actions?action_type=warn", headers=world.mod_h).get_json()
    second = client.get("/api/moderation/actions?action_type=warn", headers=world.mod_h).get_json()
    assert first == second
