import os
import tempfile
from types import SimpleNamespace

import pytest

# must be in place before utils.config_handler resolves its data dir
_TMP = tempfile.mkdtemp(prefix="modkit-test-")
os.environ["CONFIG_DIR"] = _TMP
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ.setdefault("JWT_SECRET_KEY", "test")
os.environ.setdefault("SECRET_KEY", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from flask_jwt_extended import create_access_token  # noqa: E402

from models import Administrator, Base, Comment, Member, MemberStatus, Moderator, Post  # noqa: E402
from utils import config_handler  # noqa: E402
from utils.db import get_engine, get_session  # noqa: E402
from utils.timefmt import utcnow  # noqa: E402


@pytest.fixture(scope="session")
def app():
    from app import create_app  # type: ignore
    a = create_app()
    a.testing = True
    return a


@pytest.fixture(autouse=True)
def _fresh_db(app):
    # 每個測試都從空資料庫開始
    eng = get_engine()
    Base.metadata.drop_all(bind=eng)
    Base.metadata.create_all(bind=eng)
    config_handler.save_config(config_handler.DEFAULT_DATA.copy())
    yield


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def session():
    with get_session() as s:
        yield s


@pytest.fixture()
def token_for(app):
    def _make(member_id: int) -> str:
        with app.app_context():
            return create_access_token(identity=str(member_id))
    return _make


def auth_header(t):
    return {"Authorization": f"Bearer {t}"}


def seed_member(nickname: str, status: str = MemberStatus.active.value) -> int:
    with get_session() as s:
        m = Member(nickname=nickname, status=status)
        s.add(m)
        s.commit()
        return m.id


def seed_post(author_id: int, deleted: bool = False) -> int:
    with get_session() as s:
        p = Post(author_id=author_id, deleted_at=utcnow() if deleted else None)
        s.add(p)
        s.commit()
        return p.id


def seed_comment(post_id: int, author_id: int, deleted: bool = False) -> int:
    with get_session() as s:
        c = Comment(post_id=post_id, author_id=author_id, deleted_at=utcnow() if deleted else None)
        s.add(c)
        s.commit()
        return c.id


def seed_admin(member_id: int) -> int:
    with get_session() as s:
        a = Administrator(member_id=member_id)
        s.add(a)
        s.commit()
        return a.id


def seed_moderator(member_id: int, admin_id: int) -> int:
    with get_session() as s:
        g = Moderator(member_id=member_id, assigned_by_administrator_id=admin_id)
        s.add(g)
        s.commit()
        return g.id


@pytest.fixture()
def world(token_for):
    """Admin Y, moderators M and M2, members Z and W, one post and one comment."""
    y = seed_member("admin-y")
    y_admin = seed_admin(y)
    x = seed_member("mod-x")
    m = seed_moderator(x, y_admin)
    x2 = seed_member("mod-x2")
    m2 = seed_moderator(x2, y_admin)
    z = seed_member("member-z")
    w = seed_member("member-w")
    post = seed_post(w)
    comment = seed_comment(post, z)
    return SimpleNamespace(
        admin_member=y, admin_id=y_admin,
        mod_member=x, mod_id=m,
        mod2_member=x2, mod2_id=m2,
        z=z, w=w, post=post, comment=comment,
        admin_h=auth_header(token_for(y)),
        mod_h=auth_header(token_for(x)),
        mod2_h=auth_header(token_for(x2)),
        z_h=auth_header(token_for(z)),
        w_h=auth_header(token_for(w)),
    )


@pytest.fixture()
def make_action(client, world):
    def _make(headers=None, **overrides):
        body = {
            "moderator_id": world.mod_id,
            "action_type": "warn",
            "target_member_id": world.z,
            "action_reason": "spam",
        }
        body.update(overrides)
        r = client.post("/api/moderation/actions", json=body, headers=headers or world.mod_h)
        assert r.status_code == 201, r.get_json()
        return r.get_json()["data"]
    return _make
