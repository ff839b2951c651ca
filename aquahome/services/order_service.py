from flask import current_app

from aquahome.errors import InvalidState, NotFound, ValidationError
from aquahome.extensions import db
from aquahome.models import Franchise, Order, Payment, Product
from aquahome.models.order import ORDER_APPROVED, ORDER_IN_TRANSIT, ORDER_PENDING
from aquahome.models.payment import PAYMENT_PENDING, PAYMENT_TYPE_INITIAL
from aquahome.permissions import Role, require
from aquahome.services.ledger import transaction
from aquahome.services.notification_service import NotificationService
from aquahome.services.staff_service import StaffService
from aquahome.utils import gateway, parse_positive_int, to_decimal, to_json, to_minor_units

AGENT_ASSIGNABLE_STATUSES = {ORDER_APPROVED, ORDER_IN_TRANSIT}


class OrderService:
    @staticmethod
    def compute_total(product, rental_duration):
        deposit = to_decimal(product.security_deposit)
        installation_fee = to_decimal(product.installation_fee)
        monthly_rent = to_decimal(product.monthly_rent)
        return to_decimal(deposit + installation_fee + monthly_rent * rental_duration)

    @staticmethod
    def create_order(actor, product_id, franchise_id, shipping_address, billing_address, rental_duration, notes=None):
        require(actor, "create_order")

        duration = parse_positive_int(rental_duration, "Rental duration")
        shipping_address = (shipping_address or "").strip()
        billing_address = (billing_address or "").strip()
        if not shipping_address or not billing_address:
            raise ValidationError("Shipping and billing addresses are required.")

        product = db.session.get(Product, product_id) if product_id else None
        if not product or not product.is_active:
            raise NotFound("Product not found.")
        franchise = db.session.get(Franchise, franchise_id) if franchise_id else None
        if not franchise or not franchise.is_active:
            raise NotFound("Franchise not found.")

        total = OrderService.compute_total(product, duration)
        client = gateway()

        with transaction("order creation") as session:
            order = Order(
                customer_id=actor.id,
                product_id=product.id,
                franchise_id=franchise.id,
                order_type="rental",
                status=ORDER_PENDING,
                shipping_address=shipping_address,
                billing_address=billing_address,
                rental_duration=duration,
                security_deposit=to_decimal(product.security_deposit),
                installation_fee=to_decimal(product.installation_fee),
                total_initial_amount=total,
                notes=(notes or "").strip() or None,
            )
            session.add(order)
            session.flush()

            # Raising here discards the flushed order along with everything else.
            intent = client.create_intent(
                to_minor_units(total),
                client.currency,
                f"order_{order.id}",
                {
                    "aquahome_order_id": order.id,
                    "order_id": order.id,
                    "customer_id": actor.id,
                    "payment_type": PAYMENT_TYPE_INITIAL,
                },
            )

            session.add(
                Payment(
                    customer_id=actor.id,
                    order_id=order.id,
                    amount=total,
                    payment_type=PAYMENT_TYPE_INITIAL,
                    status=PAYMENT_PENDING,
                    payment_method="razorpay",
                    transaction_id=intent["id"],
                    payment_details=to_json(intent),
                )
            )

        current_app.logger.info(
            "Order %s created for customer %s, total %s, gateway order %s", order.id, actor.id, total, intent["id"]
        )
        return {
            "gateway_order_id": intent["id"],
            "amount": str(total),
            "currency": client.currency,
            "key": client.key_id,
            "aquahome_order_id": order.id,
        }

    @staticmethod
    def _scoped_order(actor, order_id):
        query = Order.query.filter(Order.id == order_id)
        if actor.role == Role.FRANCHISE_OWNER:
            query = query.filter(Order.franchise_id.in_(StaffService.owned_franchise_ids(actor.id)))
        order = query.with_for_update().first()
        if not order:
            raise NotFound("Order not found.")
        return order

    @staticmethod
    def assign_agent(actor, order_id, agent_id):
        require(actor, "assign_order_agent")
        if not agent_id:
            raise ValidationError("Service agent ID is required.")

        with transaction("order agent assignment"):
            order = OrderService._scoped_order(actor, order_id)
            if order.status not in AGENT_ASSIGNABLE_STATUSES:
                raise InvalidState(
                    f"Order cannot be assigned in its current state (current: {order.status}).",
                    current_state=order.status,
                )
            agent = StaffService.assignable_agent(actor, agent_id)
            order.service_agent_id = agent.id
            NotificationService.push(
                agent.id,
                "New Delivery Assignment",
                f"You have been assigned to order #{order.id}.",
                notification_type="order",
                related_id=order.id,
                related_type="order",
            )
        return order

    @staticmethod
    def list_agent_orders(actor):
        require(actor, "list_agent_orders")
        return (
            Order.query.filter_by(service_agent_id=actor.id)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .all()
        )
