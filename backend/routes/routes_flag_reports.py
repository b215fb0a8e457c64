from flask import Blueprint, request

from services.flag_report_service import FlagReportService
from services.role_service import ROLE_ADMINISTRATOR, ROLE_MODERATOR, Actor
from utils.authz import require_role
from utils.db import get_session
from utils.pagination import PageRequest
from utils.response_helpers import json_body, paginated_response, success_response
from utils.timefmt import iso

bp = Blueprint("flag_reports", __name__, url_prefix="/api/flag-reports")


@bp.post("")
@require_role()
def create_report(actor: Actor):
    data = json_body()
    with get_session() as s:
        report = FlagReportService.create(s, actor, data)
        return success_response(report.to_dict(), 201)


@bp.get("")
@require_role(ROLE_MODERATOR, ROLE_ADMINISTRATOR)
def index_reports(actor: Actor):
    page = PageRequest.from_args(request.args)
    with get_session() as s:
        result = FlagReportService.index(s, actor, request.args, page)
        return paginated_response(result, lambda r: r.to_summary())


@bp.get("/<int:report_id>")
@require_role()
def get_report(report_id: int, actor: Actor):
    with get_session() as s:
        report = FlagReportService.get(s, actor, report_id)
        return success_response(report.to_dict())


@bp.patch("/<int:report_id>")
@require_role(ROLE_MODERATOR, ROLE_ADMINISTRATOR)
def triage_report(report_id: int, actor: Actor):
    patch = json_body()
    with get_session() as s:
        report = FlagReportService.update(s, actor, report_id, patch)
        return success_response(report.to_dict())


@bp.delete("/<int:report_id>")
@require_role()
def withdraw_report(report_id: int, actor: Actor):
    with get_session() as s:
        report = FlagReportService.withdraw(s, actor, report_id)
        return success_response({"id": report.id, "deleted": True, "deleted_at": iso(report.deleted_at)})
