from flask import current_app

from aquahome.errors import InvalidState, NotFound
from aquahome.models import Payment, Subscription
from aquahome.models.base import utcnow
from aquahome.models.payment import PAYMENT_PENDING, PAYMENT_TYPE_MONTHLY
from aquahome.models.subscription import SUBSCRIPTION_ACTIVE
from aquahome.permissions import require
from aquahome.services.ledger import transaction
from aquahome.utils import gateway, parse_positive_int, to_decimal, to_json, to_minor_units


class SubscriptionBillingService:
    @staticmethod
    def monthly_invoice_number(subscription_id, today=None):
        today = today or utcnow().date()
        return f"INV-M-{today.strftime('%Y%m%d')}-{subscription_id}"

    @staticmethod
    def generate_monthly_payment(actor, subscription_id):
        require(actor, "generate_monthly_payment")
        subscription_id = parse_positive_int(subscription_id, "Subscription ID")

        subscription = Subscription.query.filter_by(id=subscription_id, customer_id=actor.id).first()
        if not subscription:
            raise NotFound("Subscription not found or doesn't belong to you.")
        if subscription.status != SUBSCRIPTION_ACTIVE:
            raise InvalidState("Subscription is not active.", current_state=subscription.status)

        amount = to_decimal(subscription.monthly_rent)
        client = gateway()

        with transaction("monthly payment generation") as session:
            intent = client.create_intent(
                to_minor_units(amount),
                client.currency,
                f"subscription_{subscription.id}",
                {
                    "customer_id": actor.id,
                    "subscription_id": subscription.id,
                    "payment_type": PAYMENT_TYPE_MONTHLY,
                },
            )
            details = to_json({"razorpay_order_id": intent["id"]})

            payment = Payment.query.filter_by(
                subscription_id=subscription.id, payment_type=PAYMENT_TYPE_MONTHLY, status=PAYMENT_PENDING
            ).first()
            if payment:
                payment.transaction_id = intent["id"]
                payment.amount = amount
                payment.payment_details = details
                reused = True
            else:
                payment = Payment(
                    customer_id=actor.id,
                    subscription_id=subscription.id,
                    amount=amount,
                    payment_type=PAYMENT_TYPE_MONTHLY,
                    status=PAYMENT_PENDING,
                    payment_method="razorpay",
                    transaction_id=intent["id"],
                    payment_details=details,
                    invoice_number=SubscriptionBillingService.monthly_invoice_number(subscription.id),
                )
                session.add(payment)
                reused = False

        current_app.logger.info(
            "Monthly payment intent %s for subscription %s (%s pending row)",
            intent["id"],
            subscription_id,
            "reused" if reused else "new",
        )
        return {
            "gateway_order_id": intent["id"],
            "amount": str(amount),
            "currency": client.currency,
            "key": client.key_id,
            "subscription_id": int(subscription_id),
        }
