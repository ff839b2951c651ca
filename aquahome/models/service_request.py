from aquahome.extensions import db
from aquahome.models.base import PKType, TimestampMixin

SERVICE_PENDING = "pending"
SERVICE_ASSIGNED = "assigned"
SERVICE_SCHEDULED = "scheduled"
SERVICE_COMPLETED = "completed"
SERVICE_CANCELLED = "cancelled"


class ServiceRequest(TimestampMixin, db.Model):
    __tablename__ = "service_requests"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    customer_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    subscription_id = db.Column(
        PKType, db.ForeignKey("subscriptions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    service_agent_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    type = db.Column(db.String(40), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=SERVICE_PENDING, index=True)
    description = db.Column(db.Text, nullable=False)
    scheduled_time = db.Column(db.DateTime(timezone=True), nullable=True)
    completion_time = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    rating = db.Column(db.SmallInteger, nullable=True)
    feedback = db.Column(db.Text, nullable=True)

    customer = db.relationship("User", foreign_keys=[customer_id])
    service_agent = db.relationship("User", foreign_keys=[service_agent_id])
    subscription = db.relationship("Subscription", back_populates="service_requests")

    __table_args__ = (
        db.Index("ix_service_requests_agent_status", "service_agent_id", "status"),
        db.CheckConstraint("rating IS NULL OR (rating >= 1 AND rating <= 5)", name="ck_service_rating_range"),
    )
