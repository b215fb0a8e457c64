"""
Module: backend/app.py
Flask application factory for the moderation & appeal service.
"""
from __future__ import annotations
import os
import uuid
import logging
from datetime import datetime, timedelta, timezone
from typing import Tuple

from dotenv import find_dotenv, load_dotenv

_dotenv_path = os.environ.get("DOTENV_PATH", "")
if _dotenv_path and os.path.exists(_dotenv_path):
    load_dotenv(_dotenv_path)
else:
    load_dotenv(find_dotenv(usecwd=True))

from flask import Flask, Response, g, jsonify, request
from flask_jwt_extended import JWTManager
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from routes.routes_appeals import bp as appeals_bp
from routes.routes_flag_reports import bp as flag_reports_bp
from routes.routes_moderation import bp as moderation_bp
from routes.routes_moderators import bp as moderators_bp
from utils.config_handler import load_config
from utils.db import get_db_health, init_engine_session
from utils.errors import ModerationError, StoreUnavailable
from utils.response_helpers import error_response

APP_BUILD_VERSION = os.getenv("APP_BUILD_VERSION", "modkit-v1.0.0")
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s:%(lineno)d | %(funcName)s() | %(message)s"


def _configure_logging(app: Flask) -> None:
    level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    app.logger.addHandler(handler)
    app.logger.setLevel(level)
    # service modules log through their own module loggers
    for name in ("services", "utils", "routes"):
        lg = logging.getLogger(name)
        lg.setLevel(level)
        if not lg.handlers:
            lg.addHandler(handler)


def create_app(database_url: str | None = None) -> Flask:
    app = Flask(__name__)
    app.config["JSON_AS_ASCII"] = False
    app.config["PROPAGATE_EXCEPTIONS"] = False
    _configure_logging(app)

    secret_key = os.getenv("SECRET_KEY")
    if not secret_key or secret_key == "dev":
        if os.getenv("FLASK_ENV") == "production":
            raise ValueError("生產環境必須設定 SECRET_KEY 環境變數")
        secret_key = "dev-only-key-not-for-production"
    app.config["SECRET_KEY"] = secret_key

    app.config["JWT_SECRET_KEY"] = os.getenv("JWT_SECRET_KEY", "devkey")
    jwt_expires_hours = int(os.getenv("JWT_ACCESS_TOKEN_EXPIRES_HOURS", "168"))
    app.config["JWT_ACCESS_TOKEN_EXPIRES"] = timedelta(hours=jwt_expires_hours)
    jwt = JWTManager(app)

    init_engine_session(database_url)
    cfg = load_config()
    app.logger.info("config page_size=%s/%s self_admin=%s", cfg.get("default_page_size"), cfg.get("max_page_size"),
                    cfg.get("allow_admin_self_registration"))

    @jwt.unauthorized_loader
    def _jwt_missing(reason: str):
        return error_response("JWT_MISSING", "缺少授權資訊", 401, hint=reason)

    @jwt.invalid_token_loader
    def _jwt_invalid(reason: str):
        return error_response("JWT_INVALID", "無效的憑證", 401, hint=reason)

    @jwt.expired_token_loader
    def _jwt_expired(h, p):
        return error_response("JWT_EXPIRED", "憑證已過期", 401)

    @app.before_request
    def add_req_id():
        g.req_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        g.request_id = g.req_id
        g.request_ts = datetime.now(timezone.utc).isoformat()

    @app.after_request
    def add_resp_id(resp: Response) -> Response:
        resp.headers["X-Request-ID"] = getattr(g, "req_id", "-")
        resp.headers["X-ModKit-Build"] = APP_BUILD_VERSION
        resp.headers.setdefault("X-Content-Type-Options", "nosniff")
        return resp

    app.register_blueprint(moderators_bp)
    app.register_blueprint(moderation_bp)
    app.register_blueprint(appeals_bp)
    app.register_blueprint(flag_reports_bp)

    @app.get("/api/healthz")
    def healthz():
        db = get_db_health()
        return jsonify({
            "ok": db["ok"],
            "service": "moderation",
            "build": APP_BUILD_VERSION,
            "db": db,
        }), (200 if db["ok"] else 503)

    @app.errorhandler(ModerationError)
    def handle_moderation_error(e: ModerationError):
        app.logger.info("%s %s -> %s: %s", request.method, request.path, e.code, e.message)
        return error_response(e.code, e.message, e.http_status, hint=e.hint, details=e.details)

    @app.errorhandler(StoreUnavailable)
    def handle_store_unavailable(e: StoreUnavailable):
        app.logger.error("store unavailable: %s", e)
        return error(StoreUnavailable.code, StoreUnavailable.http_status, "資料庫暫時無法使用", "請稍後再試")

    @app.errorhandler(SQLAlchemyError)
    def handle_db_error(e: SQLAlchemyError):
        app.logger.exception("Database failure")
        return error(StoreUnavailable.code, StoreUnavailable.http_status, "資料庫暫時無法使用", "請稍後再試")

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        app.logger.info(f"HTTP {e.code}: {e.description}")
        return error_response(f"HTTP-{e.code}", e.description or "HTTP錯誤", e.code or 500,
                              hint="檢查請求參數與權限")

    @app.errorhandler(Exception)
    def handle_any(e: Exception):  # noqa: F841
        app.logger.exception("Unhandled exception")
        return error_response("INTERNAL", str(e), 500, hint="請稍後再試或聯繫系統管理員",
                              details={"error_type": type(e).__name__})

    return app


def error(code: str, http: int, message: str, hint: str | None = None) -> Tuple[Response, int]:
    return jsonify({
        "ok": False,
        "error": {"code": code, "message": message, "hint": hint, "details": None},
        "trace": {"request_id": g.get("request_id"), "ts": g.get("request_ts")}
    }), http


if __name__ == "__main__":
    app = create_app()
    port = int(os.getenv("MODKIT_PORT", os.getenv("PORT", "12005")))
    app.run(host="0.0.0.0", port=port)
