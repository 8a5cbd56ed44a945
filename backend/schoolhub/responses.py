# Overview: Consistent JSON response envelope for every endpoint.

"""
Response Envelope

success -> {"success": true, "data": ..., "meta": ...?}
failure -> {"success": false, "error": {"message": ..., "code": ...?, "details": ...?}}

ok() and fail() return (Response, status) tuples that Flask views can return
directly. ResponseSink is the write-once target used by checks that may
answer the request themselves (see tenant_service.assert_tenant_entity).
"""

from __future__ import annotations

from flask import jsonify

from .errors import ApiError


def success_body(data, meta=None) -> dict:
    body = {"success": True, "data": data}
    if meta is not None:
        body["meta"] = meta
    return body


def error_body(message: str, code: str | None = None, details=None) -> dict:
    error = {"message": message}
    if code is not None:
        error["code"] = code
    if details is not None:
        error["details"] = details
    return {"success": False, "error": error}


def ok(data, meta=None, status_code: int = 200):
    return jsonify(success_body(data, meta)), status_code


def fail(status_code: int, message: str, code: str | None = None, details=None):
    return jsonify(error_body(message, code, details)), status_code


def fail_from(exc: ApiError):
    return fail(exc.status_code, exc.message, exc.code, exc.details)


class ResponseSink:
    """
    Collects at most one error response.

    Usage:
        sink = ResponseSink()
        if assert_tenant_entity(identity, sink, item.school_id):
            return sink.to_response()
    """

    def __init__(self):
        self.status_code: int | None = None
        self.body: dict | None = None

    @property
    def written(self) -> bool:
        return self.status_code is not None

    def fail(self, status_code: int, message: str, code: str | None = None, details=None) -> None:
        if self.written:
            raise RuntimeError("Response already written")
        self.status_code = status_code
        self.body = error_body(message, code, details)

    def to_response(self):
        if not self.written:
            raise RuntimeError("No response written")
        return jsonify(self.body), self.status_code
