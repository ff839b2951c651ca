from aquahome.services.notification_service import NotificationService
from aquahome.services.order_service import OrderService
from aquahome.services.payment_service import PaymentService
from aquahome.services.service_request_service import ServiceRequestService
from aquahome.services.signature_service import SignatureVerifier
from aquahome.services.staff_service import StaffService
from aquahome.services.subscription_service import SubscriptionBillingService

__all__ = [
    "NotificationService",
    "OrderService",
    "PaymentService",
    "ServiceRequestService",
    "SignatureVerifier",
    "StaffService",
    "SubscriptionBillingService",
]
