from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from app.models.base import as_utc
from app.services import NotificationService

api_notification_bp = Blueprint("api_notification", __name__)


@api_notification_bp.get("/me")
@login_required
def my_notifications():
    items = NotificationService.latest_for_user(current_user.id, limit=20)
    return jsonify(
        {
            "unread": NotificationService.unread_count(current_user.id),
            "items": [
                {
                    "id": n.id,
                    "kind": n.kind,
                    "title": n.title,
                    "message": n.message,
                    "request_id": n.request_id,
                    "is_read": n.is_read,
                    "created_at": as_utc(n.created_at).isoformat(),
                }
                for n in items
            ],
        }
    )


@api_notification_bp.post("/me/read")
@login_required
def mark_all_read():
    NotificationService.mark_all_read(current_user.id)
    return jsonify({"ok": True})
