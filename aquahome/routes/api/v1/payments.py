from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required

from aquahome.decorators import current_actor
from aquahome.extensions import limiter
from aquahome.services import PaymentService, SubscriptionBillingService

api_payment_bp = Blueprint("api_payment", __name__)


def _verify_limit():
    return current_app.config.get("PAYMENT_VERIFY_RATE_LIMIT", "20 per minute")


def _payment_json(payment):
    return {
        "id": payment.id,
        "order_id": payment.order_id,
        "subscription_id": payment.subscription_id,
        "amount": str(payment.amount),
        "payment_type": payment.payment_type,
        "status": payment.status,
        "payment_method": payment.payment_method,
        "transaction_id": payment.transaction_id,
        "invoice_number": payment.invoice_number,
        "details": PaymentService.details_of(payment),
        "created_at": payment.created_at.isoformat() if payment.created_at else None,
    }


@api_payment_bp.post("/verify")
@login_required
@limiter.limit(_verify_limit)
def verify_payment():
    payload = request.get_json(silent=True) or {}
    result = PaymentService.verify_payment(
        current_actor(),
        gateway_order_id=payload.get("razorpay_order_id"),
        gateway_payment_id=payload.get("razorpay_payment_id"),
        signature=payload.get("razorpay_signature"),
        aquahome_order_id=payload.get("aquahome_order_id"),
        subscription_id=payload.get("subscription_id"),
    )
    return jsonify(result)


@api_payment_bp.post("/monthly")
@login_required
def generate_monthly_payment():
    payload = request.get_json(silent=True) or {}
    result = SubscriptionBillingService.generate_monthly_payment(current_actor(), payload.get("subscription_id"))
    return jsonify(result)


@api_payment_bp.get("")
@login_required
def payment_history():
    return jsonify([_payment_json(p) for p in PaymentService.payment_history(current_actor())])


@api_payment_bp.get("/<int:payment_id>")
@login_required
def payment_detail(payment_id):
    return jsonify(_payment_json(PaymentService.get_payment(current_actor(), payment_id)))
