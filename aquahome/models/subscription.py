from aquahome.extensions import db
from aquahome.models.base import Money, PKType, TimestampMixin

SUBSCRIPTION_ACTIVE = "active"
SUBSCRIPTION_INACTIVE = "inactive"
SUBSCRIPTION_SUSPENDED = "suspended"
SUBSCRIPTION_CANCELLED = "cancelled"


class Subscription(TimestampMixin, db.Model):
    __tablename__ = "subscriptions"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    customer_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    order_id = db.Column(PKType, db.ForeignKey("orders.id"), nullable=False, index=True)
    franchise_id = db.Column(PKType, db.ForeignKey("franchises.id"), nullable=True, index=True)
    product_id = db.Column(PKType, db.ForeignKey("products.id"), nullable=False, index=True)
    monthly_rent = db.Column(Money, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=SUBSCRIPTION_ACTIVE, index=True)
    start_date = db.Column(db.Date, nullable=True)
    next_billing_date = db.Column(db.Date, nullable=True)
    last_payment_date = db.Column(db.Date, nullable=True)

    customer = db.relationship("User")
    order = db.relationship("Order")
    franchise = db.relationship("Franchise", back_populates="subscriptions")
    product = db.relationship("Product")
    payments = db.relationship("Payment", back_populates="subscription", lazy="dynamic")
    service_requests = db.relationship("ServiceRequest", back_populates="subscription", lazy="dynamic")
