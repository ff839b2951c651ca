from flask import Blueprint

from aquahome.routes.api.v1.notifications import api_notification_bp
from aquahome.routes.api.v1.orders import api_order_bp
from aquahome.routes.api.v1.payments import api_payment_bp
from aquahome.routes.api.v1.service_requests import api_service_request_bp

api_v1_bp = Blueprint("api_v1", __name__)
api_v1_bp.register_blueprint(api_order_bp, url_prefix="/orders")
api_v1_bp.register_blueprint(api_payment_bp, url_prefix="/payments")
api_v1_bp.register_blueprint(api_service_request_bp, url_prefix="/service-requests")
api_v1_bp.register_blueprint(api_notification_bp, url_prefix="/notifications")
