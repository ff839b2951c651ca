from sqlalchemy import text

from aquahome.extensions import db
from aquahome.models.base import Money, PKType, TimestampMixin

PAYMENT_PENDING = "pending"
PAYMENT_SUCCESS = "success"

PAYMENT_TYPE_INITIAL = "initial"
PAYMENT_TYPE_MONTHLY = "monthly"

_PENDING_ONLY = text("status = 'pending'")
_SUCCESS_ONLY = text("status = 'success'")


class Payment(TimestampMixin, db.Model):
    __tablename__ = "payments"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    customer_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    order_id = db.Column(PKType, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=True, index=True)
    subscription_id = db.Column(
        PKType, db.ForeignKey("subscriptions.id", ondelete="CASCADE"), nullable=True, index=True
    )
    amount = db.Column(Money, nullable=False)
    payment_type = db.Column(db.String(16), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=PAYMENT_PENDING, index=True)
    payment_method = db.Column(db.String(32), nullable=False, default="razorpay")
    transaction_id = db.Column(db.String(64), nullable=False, index=True)
    payment_details = db.Column(db.Text, nullable=True)
    invoice_number = db.Column(db.String(48), nullable=True, index=True)
    notes = db.Column(db.Text, nullable=True)

    customer = db.relationship("User")
    order = db.relationship("Order", back_populates="payments")
    subscription = db.relationship("Subscription", back_populates="payments")

    __table_args__ = (
        # One open attempt per (order, type) and per (subscription, type).
        db.Index(
            "uq_payments_pending_order_type",
            "order_id",
            "payment_type",
            unique=True,
            sqlite_where=_PENDING_ONLY,
            postgresql_where=_PENDING_ONLY,
        ),
        db.Index(
            "uq_payments_pending_subscription_type",
            "subscription_id",
            "payment_type",
            unique=True,
            sqlite_where=_PENDING_ONLY,
            postgresql_where=_PENDING_ONLY,
        ),
        # A captured gateway payment id settles exactly one row.
        db.Index(
            "uq_payments_success_transaction",
            "transaction_id",
            unique=True,
            sqlite_where=_SUCCESS_ONLY,
            postgresql_where=_SUCCESS_ONLY,
        ),
        db.CheckConstraint("amount >= 0", name="ck_payment_amount_non_negative"),
    )
