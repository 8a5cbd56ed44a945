# Overview: Flask API routes for notification settings; parses input and returns JSON responses.

from flask import Blueprint, request, g, current_app

from ..decorators import require_auth
from ..errors import ApiError, ValidationError
from ..responses import ok, fail, fail_from
from ..services import notification_service
from ..validation import parse_str_field, require_json


notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@notifications_bp.put("/preferences")
@require_auth
def update_preferences_route():
    """
    Request body (any subset, booleans):
    {
        "low_balance_warning": true,
        "bus_updates": false,
        "new_grade": true,
        "new_homework": true
    }
    """
    try:
        data = require_json(request.get_json(silent=True))

        unknown = sorted(set(data) - set(notification_service.PREFERENCE_FIELDS))
        if unknown:
            raise ValidationError(f"Unknown preference fields: {', '.join(unknown)}")
        for key, value in data.items():
            if not isinstance(value, bool):
                raise ValidationError(f"{key} must be a boolean")

        prefs = notification_service.update_preferences(g.identity.id, data)
        return ok(prefs.to_dict())

    except ApiError as e:
        return fail_from(e)
    except Exception:
        current_app.logger.exception("Failed to update notification preferences")
        return fail(500, "Internal server error", "SERVER_ERROR")


@notifications_bp.post("/devices")
@require_auth
def register_device_route():
    """Request body: {"token": "<push token>", "platform": "android"}"""
    try:
        data = require_json(request.get_json(silent=True))
        token = parse_str_field(data, "token", max_length=512)
        platform = parse_str_field(data, "platform", required=False, max_length=16)

        device = notification_service.register_device(g.identity.id, token, platform)
        return ok(device.to_dict(), status_code=201)

    except ApiError as e:
        return fail_from(e)
    except Exception:
        current_app.logger.exception("Failed to register device")
        return fail(500, "Internal server error", "SERVER_ERROR")
