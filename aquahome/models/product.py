from aquahome.extensions import db
from aquahome.models.base import Money, PKType, TimestampMixin


class Product(TimestampMixin, db.Model):
    __tablename__ = "products"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    name = db.Column(db.String(140), nullable=False)
    description = db.Column(db.Text, nullable=True)
    monthly_rent = db.Column(Money, nullable=False)
    security_deposit = db.Column(Money, nullable=False, default=0)
    installation_fee = db.Column(Money, nullable=False, default=0)
    image_url = db.Column(db.String(500), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    __table_args__ = (
        db.CheckConstraint("monthly_rent >= 0", name="ck_product_rent_non_negative"),
    )
