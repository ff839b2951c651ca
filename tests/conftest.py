import hashlib
import hmac
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest
from flask import g

from aquahome import create_app
from aquahome.errors import GatewayError
from aquahome.extensions import db
from aquahome.models import Franchise, Order, Payment, Product, ServiceRequest, Subscription, User
from aquahome.permissions import Actor

TEST_SECRET = "rzp_test_secret"


class FakeGateway:
    """Stands in for the Razorpay client; records every intent it is asked for."""

    currency = "INR"
    key_id = "rzp_test_key"

    def __init__(self):
        self.calls = []
        self.fail = False
        self._counter = 0

    def create_intent(self, amount_minor_units, currency, receipt, notes=None):
        self.calls.append(
            {"amount": amount_minor_units, "currency": currency, "receipt": receipt, "notes": notes or {}}
        )
        if self.fail:
            raise GatewayError("Payment gateway is unreachable.")
        self._counter += 1
        return {
            "id": f"order_gw_{self._counter}",
            "amount": amount_minor_units,
            "currency": currency,
            "receipt": receipt,
            "status": "created",
        }


def sign(gateway_order_id, gateway_payment_id, secret=TEST_SECRET):
    message = f"{gateway_order_id}|{gateway_payment_id}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


@pytest.fixture
def app():
    app = create_app("testing")
    ctx = app.app_context()
    ctx.push()
    db.create_all()
    app.extensions["payment_gateway"] = FakeGateway()
    yield app
    db.session.remove()
    db.drop_all()
    ctx.pop()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def fake_gateway(app):
    return app.extensions["payment_gateway"]


def _user(name, email, role, franchise_id=None):
    user = User(name=name, email=email, phone="9000000000", role=role, franchise_id=franchise_id)
    db.session.add(user)
    db.session.flush()
    return user


@pytest.fixture
def seed(app):
    admin = _user("Asha Admin", "admin@aquahome.test", "admin")
    owner = _user("Omar Owner", "owner@aquahome.test", "franchise_owner")
    other_owner = _user("Olga Owner", "owner2@aquahome.test", "franchise_owner")

    franchise = Franchise(name="Chennai North", owner_id=owner.id, city="Chennai", zip_code="600001")
    other_franchise = Franchise(name="Madurai", owner_id=other_owner.id, city="Madurai", zip_code="625001")
    db.session.add_all([franchise, other_franchise])
    db.session.flush()

    agent = _user("Arun Agent", "agent@aquahome.test", "service_agent", franchise.id)
    other_agent = _user("Anil Agent", "agent2@aquahome.test", "service_agent", other_franchise.id)
    customer = _user("Kavya Customer", "customer@aquahome.test", "customer")
    other_customer = _user("Kiran Customer", "customer2@aquahome.test", "customer")

    product = Product(
        name="RO Purifier Classic",
        monthly_rent=Decimal("300.00"),
        security_deposit=Decimal("1000.00"),
        installation_fee=Decimal("500.00"),
    )
    inactive_product = Product(name="Retired Model", monthly_rent=Decimal("250.00"), is_active=False)
    db.session.add_all([product, inactive_product])
    db.session.commit()

    return SimpleNamespace(
        admin=admin,
        owner=owner,
        other_owner=other_owner,
        franchise=franchise,
        other_franchise=other_franchise,
        agent=agent,
        other_agent=other_agent,
        customer=customer,
        other_customer=other_customer,
        product=product,
        inactive_product=inactive_product,
    )


@pytest.fixture
def actors(seed):
    return SimpleNamespace(
        admin=Actor.from_user(seed.admin),
        owner=Actor.from_user(seed.owner),
        other_owner=Actor.from_user(seed.other_owner),
        agent=Actor.from_user(seed.agent),
        other_agent=Actor.from_user(seed.other_agent),
        customer=Actor.from_user(seed.customer),
        other_customer=Actor.from_user(seed.other_customer),
    )


@pytest.fixture
def pending_order(seed):
    """A freshly placed order awaiting its first payment."""
    order = Order(
        customer_id=seed.customer.id,
        product_id=seed.product.id,
        franchise_id=seed.franchise.id,
        status="pending",
        shipping_address="12 Lake Road, Chennai",
        billing_address="12 Lake Road, Chennai",
        rental_duration=12,
        security_deposit=Decimal("1000.00"),
        installation_fee=Decimal("500.00"),
        total_initial_amount=Decimal("5100.00"),
    )
    db.session.add(order)
    db.session.flush()
    payment = Payment(
        customer_id=seed.customer.id,
        order_id=order.id,
        amount=Decimal("5100.00"),
        payment_type="initial",
        status="pending",
        transaction_id="order_gw_pending",
    )
    db.session.add(payment)
    db.session.commit()
    return SimpleNamespace(order=order, payment=payment, gateway_order_id="order_gw_pending")


@pytest.fixture
def subscription(seed):
    order = Order(
        customer_id=seed.customer.id,
        product_id=seed.product.id,
        franchise_id=seed.franchise.id,
        status="installed",
        shipping_address="12 Lake Road, Chennai",
        billing_address="12 Lake Road, Chennai",
        rental_duration=12,
        total_initial_amount=Decimal("5100.00"),
    )
    db.session.add(order)
    db.session.flush()
    sub = Subscription(
        customer_id=seed.customer.id,
        order_id=order.id,
        franchise_id=seed.franchise.id,
        product_id=seed.product.id,
        monthly_rent=Decimal("300.00"),
        status="active",
        start_date=date(2026, 1, 31),
        next_billing_date=date(2026, 1, 31),
    )
    db.session.add(sub)
    db.session.commit()
    return sub


@pytest.fixture
def make_request(seed, subscription):
    """Builds a service request directly in the given state."""

    def _make(status="pending", agent=None, **fields):
        item = ServiceRequest(
            customer_id=seed.customer.id,
            subscription_id=subscription.id,
            service_agent_id=agent.id if agent else None,
            type="maintenance",
            status=status,
            description="Filter making noise",
            **fields,
        )
        db.session.add(item)
        db.session.commit()
        return item

    return _make


@pytest.fixture
def login(client):
    def _login(user):
        # The app context outlives each request here, so drop the cached user.
        g.pop("_login_user", None)
        with client.session_transaction() as session:
            session["_user_id"] = str(user.id)
            session["_fresh"] = True
        return client

    return _login
