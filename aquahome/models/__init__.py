from aquahome.models.franchise import Franchise
from aquahome.models.notification import Notification
from aquahome.models.order import Order
from aquahome.models.payment import Payment
from aquahome.models.product import Product
from aquahome.models.service_request import ServiceRequest
from aquahome.models.subscription import Subscription
from aquahome.models.user import User

__all__ = [
    "User",
    "Franchise",
    "Product",
    "Order",
    "Payment",
    "Subscription",
    "ServiceRequest",
    "Notification",
]
