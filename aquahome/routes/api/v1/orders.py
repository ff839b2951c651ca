from flask import Blueprint, jsonify, request
from flask_login import login_required

from aquahome.decorators import current_actor, role_required
from aquahome.services import OrderService

api_order_bp = Blueprint("api_order", __name__)


def _order_json(order):
    return {
        "id": order.id,
        "customer_id": order.customer_id,
        "product_id": order.product_id,
        "franchise_id": order.franchise_id,
        "service_agent_id": order.service_agent_id,
        "order_type": order.order_type,
        "status": order.status,
        "rental_duration": order.rental_duration,
        "shipping_address": order.shipping_address,
        "total_initial_amount": str(order.total_initial_amount),
        "delivery_date": order.delivery_date.isoformat() if order.delivery_date else None,
        "created_at": order.created_at.isoformat() if order.created_at else None,
    }


@api_order_bp.post("")
@login_required
def create_order():
    payload = request.get_json(silent=True) or {}
    result = OrderService.create_order(
        current_actor(),
        product_id=payload.get("product_id"),
        franchise_id=payload.get("franchise_id"),
        shipping_address=payload.get("shipping_address"),
        billing_address=payload.get("billing_address"),
        rental_duration=payload.get("rental_duration"),
        notes=payload.get("notes"),
    )
    return jsonify(result), 201


@api_order_bp.get("/agent")
@login_required
@role_required("service_agent")
def agent_orders():
    return jsonify([_order_json(o) for o in OrderService.list_agent_orders(current_actor())])


@api_order_bp.patch("/<int:order_id>/agent")
@login_required
def assign_agent(order_id):
    payload = request.get_json(silent=True) or {}
    order = OrderService.assign_agent(current_actor(), order_id, payload.get("agent_id"))
    return jsonify({"message": "Service agent assigned successfully", "order": _order_json(order)})
