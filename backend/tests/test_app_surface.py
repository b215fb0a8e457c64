import pytest

from utils import config_handler
from utils.errors import InvalidArgument
from utils.pagination import PageRequest


def test_healthz(client):
    r = client.get("/api/healthz")
    assert r.status_code == 200
    body = r.get_json()
    assert body["ok"] is True
    assert body["db"]["driver"].startswith("sqlite")


def test_request_id_is_echoed(client, world):
    r = client.get("/api/moderation/actions/999", headers={**world.mod_h, "X-Request-ID": "abc123"})
    assert r.status_code == 404
    assert r.headers["X-Request-ID"] == "abc123"
    body = r.get_json()
    assert body["ok"] is False
    assert body["trace"]["request_id"] == "abc123"
    assert set(body["error"]) == {"code", "message", "hint", "details"}


def test_unknown_route_uses_envelope(client):
    r = client.get("/api/does-not-exist")
    assert r.status_code == 404
    assert r.get_json()["error"]["code"] == "HTTP-404"


def test_malformed_json_body(client, world):
    r = client.post("/api/moderation/actions", data="{not json", headers={**world.mod_h, "Content-Type": "application/json"})
    assert r.status_code == 400
    arr = client.post("/api/appeals", json=[1, 2], headers=world.z_h)
    assert arr.status_code == 400


def test_page_request_defaults_follow_config():
    assert PageRequest.from_args({}) == PageRequest(page=1, limit=20)
    config_handler.update_config(default_page_size=5, max_page_size=10)
    assert PageRequest.from_args({}).limit == 5
    assert PageRequest.from_args({"page": "3", "limit": "10"}).offset == 20
    with pytest.raises(InvalidArgument):
        PageRequest.from_args({"limit": "11"})
    with pytest.raises(InvalidArgument):
        PageRequest.from_args({"page": "0"})


def test_update_config_rejects_unknown_keys():
    with pytest.raises(KeyError):
        config_handler.update_config(colour="blue")
    assert "colour" not in config_handler.load_config()


HUGE = "99999999999999999999999"


@pytest.mark.parametrize("method,path", [
    ("get", f"/api/appeals/{HUGE}"),
    ("patch", f"/api/appeals/{HUGE}"),
    ("delete", f"/api/appeals/{HUGE}"),
    ("get", f"/api/flag-reports/{HUGE}"),
    ("delete", f"/api/flag-reports/{HUGE}"),
    ("get", f"/api/moderation/actions/{HUGE}"),
    ("delete", f"/api/moderation/actions/{HUGE}"),
    ("get", f"/api/moderation/actions/{HUGE}/logs"),
    ("get", f"/api/moderation/actions/1/logs/{HUGE}"),
    ("get", f"/api/admin/moderators/{HUGE}"),
    ("post", f"/api/admin/moderators/{HUGE}/revoke"),
    ("put", f"/api/admin/members/{HUGE}/moderator"),
])
def test_out_of_range_path_ids_are_not_found(client, world, method, path):
    r = getattr(client, method)(path, json={}, headers=world.admin_h)
    assert r.status_code == 404
    assert r.get_json()["error"]["code"] == "NOT_FOUND"


def test_out_of_range_query_ids_and_pages_are_rejected(client, world):
    for url in (
        f"/api/flag-reports?page={HUGE}",
        f"/api/flag-reports?reporter_id={HUGE}",
        f"/api/appeals?appellant_id={HUGE}",
        f"/api/moderation/actions?page={2**62}&limit=20",
    ):
        r = client.get(url, headers=world.admin_h)
        assert r.status_code == 400, url
        assert r.get_json()["error"]["code"] == "INVALID_ARGUMENT"

    body = client.post("/api/flag-reports", json={"post_id": int(HUGE), "reason": "spam"}, headers=world.z_h)
    assert body.status_code == 400

    last = PageRequest.from_args({"page": str(2**63 // 20), "limit": "20"})
    assert last.offset <= 2**63 - 1


def test_default_config_keys():
    assert set(config_handler.load_config()) == {
        "default_page_size", "max_page_size", "allow_admin_self_registration",
    }
