from aquahome.extensions import db
from aquahome.models.base import Money, PKType, TimestampMixin

ORDER_PENDING = "pending"
ORDER_APPROVED = "approved"
ORDER_REJECTED = "rejected"
ORDER_IN_TRANSIT = "in_transit"
ORDER_DELIVERED = "delivered"
ORDER_INSTALLED = "installed"
ORDER_CANCELLED = "cancelled"


class Order(TimestampMixin, db.Model):
    __tablename__ = "orders"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    customer_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(PKType, db.ForeignKey("products.id"), nullable=False, index=True)
    franchise_id = db.Column(PKType, db.ForeignKey("franchises.id"), nullable=False, index=True)
    service_agent_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    order_type = db.Column(db.String(24), nullable=False, default="rental")
    status = db.Column(db.String(24), nullable=False, default=ORDER_PENDING, index=True)
    shipping_address = db.Column(db.Text, nullable=False)
    billing_address = db.Column(db.Text, nullable=False)
    rental_duration = db.Column(db.Integer, nullable=False)
    security_deposit = db.Column(Money, nullable=False, default=0)
    installation_fee = db.Column(Money, nullable=False, default=0)
    total_initial_amount = db.Column(Money, nullable=False)
    delivery_date = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    customer = db.relationship("User", foreign_keys=[customer_id])
    service_agent = db.relationship("User", foreign_keys=[service_agent_id])
    product = db.relationship("Product")
    franchise = db.relationship("Franchise", back_populates="orders")
    payments = db.relationship("Payment", back_populates="order", lazy="dynamic")

    __table_args__ = (
        db.Index("ix_orders_customer_status", "customer_id", "status"),
        db.CheckConstraint("rental_duration >= 1", name="ck_order_rental_duration_positive"),
    )
