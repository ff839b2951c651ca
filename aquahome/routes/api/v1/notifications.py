from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from aquahome.services import NotificationService

api_notification_bp = Blueprint("api_notification", __name__)


@api_notification_bp.get("/me")
@login_required
def my_notifications():
    limit = min(request.args.get("limit", 20, type=int), 100)
    items = NotificationService.latest_for_user(current_user.id, limit=limit)
    return jsonify(
        {
            "unread": NotificationService.unread_count(current_user.id),
            "items": [
                {
                    "id": n.id,
                    "title": n.title,
                    "message": n.message,
                    "type": n.type,
                    "related_id": n.related_id,
                    "related_type": n.related_type,
                    "is_read": n.is_read,
                    "created_at": n.created_at.isoformat(),
                }
                for n in items
            ],
        }
    )


@api_notification_bp.post("/me/read")
@login_required
def mark_all_read():
    updated = NotificationService.mark_all_read(current_user.id)
    return jsonify({"ok": True, "updated": updated})
