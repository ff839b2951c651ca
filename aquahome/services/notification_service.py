from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from aquahome.extensions import db
from aquahome.models import Notification


class NotificationService:
    @staticmethod
    def push(
        user_id, title, message, notification_type="general", related_id=None, related_type=None, best_effort=False
    ):
        """
        Append one notification to the caller's unit of work.

        With best_effort=True the insert runs in a savepoint and a storage
        failure is logged and dropped; otherwise it propagates and the
        surrounding transaction rolls back with it.
        """
        if not best_effort:
            return NotificationService._insert(user_id, title, message, notification_type, related_id, related_type)

        try:
            with db.session.begin_nested():
                return NotificationService._insert(user_id, title, message, notification_type, related_id, related_type)
        except SQLAlchemyError as exc:
            current_app.logger.warning(
                "Notification for user %s (%s %s) not stored: %s", user_id, related_type, related_id, exc
            )
            return None

    @staticmethod
    def _insert(user_id, title, message, notification_type, related_id, related_type):
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=notification_type,
            related_id=related_id,
            related_type=related_type,
        )
        db.session.add(notification)
        db.session.flush()
        return notification

    @staticmethod
    def unread_count(user_id):
        return Notification.query.filter_by(user_id=user_id, is_read=False).count()

    @staticmethod
    def latest_for_user(user_id, limit=20):
        return (
            Notification.query.filter_by(user_id=user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def mark_all_read(user_id):
        updated = Notification.query.filter_by(user_id=user_id, is_read=False).update({"is_read": True})
        db.session.commit()
        return updated
