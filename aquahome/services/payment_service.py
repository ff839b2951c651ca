import json

from flask import current_app
from sqlalchemy import or_

from aquahome.errors import AlreadyProcessed, InvalidSignature, InvalidState, NotFound, ValidationError
from aquahome.extensions import db
from aquahome.models import Order, Payment, Subscription
from aquahome.models.base import utcnow
from aquahome.models.order import ORDER_APPROVED, ORDER_PENDING
from aquahome.models.payment import PAYMENT_PENDING, PAYMENT_SUCCESS, PAYMENT_TYPE_INITIAL, PAYMENT_TYPE_MONTHLY
from aquahome.models.subscription import SUBSCRIPTION_ACTIVE
from aquahome.permissions import Role, require
from aquahome.services.ledger import transaction
from aquahome.services.notification_service import NotificationService
from aquahome.services.signature_service import SignatureVerifier
from aquahome.services.staff_service import StaffService
from aquahome.utils import add_months, parse_positive_int, to_json

PAYMENT_TYPE_LABELS = {
    PAYMENT_TYPE_INITIAL: "Initial",
    PAYMENT_TYPE_MONTHLY: "Monthly",
}

HISTORY_LIMIT = 100


class PaymentService:
    """
    Reconciles gateway payment confirmations against the ledger.

    A confirmation is accepted at most once per gateway payment id. The
    pre-transaction gate catches replays; the conditional updates inside the
    transaction catch the concurrent ones.
    """

    @staticmethod
    def verify_payment(actor, gateway_order_id, gateway_payment_id, signature, aquahome_order_id=None, subscription_id=None):
        require(actor, "verify_payment")

        gateway_order_id = (gateway_order_id or "").strip()
        gateway_payment_id = (gateway_payment_id or "").strip()
        signature = (signature or "").strip()
        if not gateway_order_id or not gateway_payment_id or not signature:
            raise ValidationError("Missing required payment fields.")
        if subscription_id is None and not aquahome_order_id:
            raise ValidationError("Invalid order ID.")

        current_app.logger.info(
            "Payment verification attempt - customer %s, payment %s, gateway order %s",
            actor.id,
            gateway_payment_id,
            gateway_order_id,
        )

        secret = current_app.config.get("RAZORPAY_KEY_SECRET", "")
        if not SignatureVerifier.verify(gateway_order_id, gateway_payment_id, secret, signature):
            current_app.logger.warning(
                "Payment signature rejected - customer %s, payment %s, gateway order %s, order %s, subscription %s",
                actor.id,
                gateway_payment_id,
                gateway_order_id,
                aquahome_order_id,
                subscription_id,
            )
            raise InvalidSignature()

        if PaymentService._already_settled(gateway_payment_id):
            current_app.logger.warning("Payment %s already processed", gateway_payment_id)
            raise AlreadyProcessed()

        details = to_json(
            {
                "razorpay_order_id": gateway_order_id,
                "razorpay_payment_id": gateway_payment_id,
                "verified_at": utcnow().isoformat(),
            }
        )

        with transaction("payment verification"):
            if subscription_id is not None:
                payment_type = PAYMENT_TYPE_MONTHLY
                order_id = PaymentService._settle_subscription(
                    actor, subscription_id, gateway_order_id, gateway_payment_id, details
                )
            else:
                payment_type = PAYMENT_TYPE_INITIAL
                order_id = PaymentService._settle_initial(
                    actor, aquahome_order_id, gateway_order_id, gateway_payment_id, details
                )

            NotificationService.push(
                actor.id,
                "Payment Successful",
                f"{PAYMENT_TYPE_LABELS[payment_type]} payment has been processed successfully.",
                notification_type="payment",
                related_id=order_id,
                related_type="order",
                best_effort=True,
            )

        current_app.logger.info(
            "Payment verification successful - customer %s, payment %s, order %s",
            actor.id,
            gateway_payment_id,
            order_id,
        )
        return {
            "success": True,
            "message": "Payment verified successfully",
            "order_id": order_id,
            "payment_type": payment_type,
        }

    @staticmethod
    def _already_settled(gateway_payment_id):
        return (
            Payment.query.filter_by(transaction_id=gateway_payment_id, status=PAYMENT_SUCCESS).first() is not None
        )

    @staticmethod
    def _mark_success(payment_id, gateway_order_id, gateway_payment_id, details):
        # Filtering on pending makes the update a compare-and-set; a concurrent
        # winner leaves nothing for us to update.
        updated = Payment.query.filter_by(
            id=payment_id, transaction_id=gateway_order_id, status=PAYMENT_PENDING
        ).update(
            {
                "status": PAYMENT_SUCCESS,
                "transaction_id": gateway_payment_id,
                "payment_method": "razorpay",
                "payment_details": details,
                "updated_at": utcnow(),
            },
            synchronize_session="fetch",
        )
        if updated == 0:
            current_app.logger.warning("Payment record %s was consumed by a concurrent request", payment_id)
            raise AlreadyProcessed("Payment already processed by another request.")

    @staticmethod
    def _settle_initial(actor, order_id, gateway_order_id, gateway_payment_id, details):
        try:
            order_id = int(order_id)
        except (TypeError, ValueError) as exc:
            raise ValidationError("Invalid order ID.") from exc
        if order_id <= 0:
            raise ValidationError("Invalid order ID.")

        order = Order.query.filter_by(id=order_id, customer_id=actor.id).with_for_update().first()
        if not order:
            current_app.logger.info("Order %s not found for customer %s", order_id, actor.id)
            raise NotFound("Order not found.")
        if order.status != ORDER_PENDING:
            raise InvalidState(
                f"Order is not in pending state (current: {order.status}).",
                current_state=order.status,
            )

        # The confirmation must belong to the intent issued for this order.
        pending = Payment.query.filter_by(
            order_id=order.id,
            payment_type=PAYMENT_TYPE_INITIAL,
            status=PAYMENT_PENDING,
            transaction_id=gateway_order_id,
        ).first()
        if not pending:
            current_app.logger.warning(
                "Gateway order %s does not match a pending payment on order %s", gateway_order_id, order.id
            )
            raise NotFound("No pending payment found for this gateway order.")

        PaymentService._mark_success(pending.id, gateway_order_id, gateway_payment_id, details)

        updated = Order.query.filter_by(id=order.id, status=ORDER_PENDING).update(
            {"status": ORDER_APPROVED, "updated_at": utcnow()},
            synchronize_session="fetch",
        )
        if updated == 0:
            current_app.logger.warning("Order %s left pending state during verification", order.id)
            raise AlreadyProcessed("Order already processed by another request.")
        return order.id

    @staticmethod
    def _settle_subscription(actor, subscription_id, gateway_order_id, gateway_payment_id, details):
        subscription_id = parse_positive_int(subscription_id, "Subscription ID")
        subscription = (
            Subscription.query.filter_by(id=subscription_id, customer_id=actor.id).with_for_update().first()
        )
        if not subscription:
            current_app.logger.info("Subscription %s not found for customer %s", subscription_id, actor.id)
            raise NotFound("Subscription not found.")
        if subscription.status != SUBSCRIPTION_ACTIVE:
            raise InvalidState("Subscription is not active.", current_state=subscription.status)

        pending = Payment.query.filter_by(
            subscription_id=subscription.id,
            payment_type=PAYMENT_TYPE_MONTHLY,
            status=PAYMENT_PENDING,
            transaction_id=gateway_order_id,
        ).first()
        if not pending:
            current_app.logger.warning(
                "Gateway order %s does not match a pending payment on subscription %s",
                gateway_order_id,
                subscription.id,
            )
            raise NotFound("No pending payment found for this gateway order.")

        PaymentService._mark_success(pending.id, gateway_order_id, gateway_payment_id, details)

        today = utcnow().date()
        subscription.last_payment_date = today
        subscription.next_billing_date = add_months(subscription.next_billing_date or today, 1)
        db.session.flush()
        return subscription.order_id

    @staticmethod
    def _scoped_query(actor):
        query = Payment.query
        if actor.role == Role.ADMIN:
            return query
        if actor.role == Role.FRANCHISE_OWNER:
            owned = StaffService.owned_franchise_ids(actor.id)
            return (
                query.outerjoin(Order, Order.id == Payment.order_id)
                .outerjoin(Subscription, Subscription.id == Payment.subscription_id)
                .filter(or_(Order.franchise_id.in_(owned), Subscription.franchise_id.in_(owned)))
            )
        return query.filter(Payment.customer_id == actor.id)

    @staticmethod
    def payment_history(actor):
        require(actor, "payment_history")
        query = PaymentService._scoped_query(actor).order_by(Payment.created_at.desc(), Payment.id.desc())
        if actor.role != Role.CUSTOMER:
            query = query.limit(HISTORY_LIMIT)
        return query.all()

    @staticmethod
    def get_payment(actor, payment_id):
        require(actor, "payment_history")
        payment = PaymentService._scoped_query(actor).filter(Payment.id == payment_id).first()
        if not payment:
            raise NotFound("Payment not found or you don't have permission to view it.")
        return payment

    @staticmethod
    def details_of(payment):
        if not payment.payment_details:
            return {}
        try:
            return json.loads(payment.payment_details)
        except ValueError:
            return {}
