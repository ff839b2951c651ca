from aquahome.extensions import db
from aquahome.models.base import PKType, TimestampMixin


class Franchise(TimestampMixin, db.Model):
    __tablename__ = "franchises"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    name = db.Column(db.String(140), nullable=False)
    owner_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    phone = db.Column(db.String(20), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(120), nullable=True)
    zip_code = db.Column(db.String(10), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    approval_state = db.Column(db.String(24), nullable=False, default="approved")

    owner = db.relationship("User", foreign_keys=[owner_id])
    members = db.relationship("User", foreign_keys="User.franchise_id", back_populates="franchise", lazy="dynamic")
    orders = db.relationship("Order", back_populates="franchise", lazy="dynamic")
    subscriptions = db.relationship("Subscription", back_populates="franchise", lazy="dynamic")
