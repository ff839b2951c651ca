from flask_login import UserMixin

from aquahome.extensions import db
from aquahome.models.base import PKType, TimestampMixin


class User(UserMixin, TimestampMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    phone = db.Column(db.String(20), nullable=False, default="")
    address = db.Column(db.Text, nullable=True)
    zip_code = db.Column(db.String(10), nullable=True, index=True)
    role = db.Column(db.String(24), nullable=False, index=True)
    franchise_id = db.Column(
        PKType,
        db.ForeignKey("franchises.id", ondelete="SET NULL", use_alter=True, name="fk_users_franchise_id"),
        nullable=True,
        index=True,
    )
    is_active_user = db.Column(db.Boolean, nullable=False, default=True)

    franchise = db.relationship("Franchise", foreign_keys=[franchise_id], back_populates="members")
    notifications = db.relationship("Notification", back_populates="user", lazy="dynamic")

    @property
    def is_active(self):
        return bool(self.is_active_user)
