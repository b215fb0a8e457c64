"""
回應輔助函數
提供統一的 API 回應格式
"""
from typing import Any, Callable, Optional

from flask import g, jsonify, request

from utils.errors import InvalidArgument
from utils.pagination import Page


def success_response(data: Any = None, status_code: int = 200) -> tuple:
    """
    成功回應格式

    Args:
        data: 回應資料
        status_code: HTTP 狀態碼 (建立資源時為 201)

    Returns:
        (response, status_code)
    """
    response: dict[str, Any] = {"ok": True}
    if data is not None:
        response["data"] = data
    return jsonify(response), status_code


def paginated_response(page: Page, serialize: Callable[[Any], dict]) -> tuple:
    """
    分頁回應格式

    Args:
        page: list 操作回傳的 Page
        serialize: 單筆資料轉 dict

    Returns:
        (response, status_code)
    """
    return jsonify({
        "ok": True,
        "pagination": page.pagination(),
        "data": [serialize(item) for item in page.items],
    }), 200


def error_response(code: str, message: str, status_code: int,
                   hint: Optional[str] = None, details: Any = None) -> tuple:
    """錯誤回應格式，附上 request trace"""
    return jsonify({
        "ok": False,
        "error": {"code": code, "message": message, "hint": hint, "details": details},
        "trace": {"request_id": g.get("request_id"), "ts": g.get("request_ts")},
    }), status_code


def json_body() -> dict:
    """請求 JSON 物件；空 body 視為 {}"""
    data = request.get_json(silent=True)
    if data is None:
        if request.get_data(cache=True).strip():
            raise InvalidArgument("request body must be valid JSON")
        return {}
    if not isinstance(data, dict):
        raise InvalidArgument("request body must be a JSON object")
    return data
