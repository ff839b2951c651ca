from flask import Blueprint, jsonify, request
from flask_login import login_required

from aquahome.decorators import current_actor, role_required
from aquahome.services import ServiceRequestService

api_service_request_bp = Blueprint("api_service_request", __name__)


def _iso(value):
    return value.isoformat() if value else None


def _service_request_json(item):
    return {
        "id": item.id,
        "customer_id": item.customer_id,
        "subscription_id": item.subscription_id,
        "service_agent_id": item.service_agent_id,
        "type": item.type,
        "status": item.status,
        "description": item.description,
        "scheduled_time": _iso(item.scheduled_time),
        "completion_time": _iso(item.completion_time),
        "notes": item.notes,
        "rating": item.rating,
        "feedback": item.feedback,
        "created_at": _iso(item.created_at),
        "updated_at": _iso(item.updated_at),
    }


@api_service_request_bp.get("")
@login_required
def list_service_requests():
    rows = ServiceRequestService.list_for_actor(current_actor())
    return jsonify([_service_request_json(r) for r in rows])


@api_service_request_bp.post("")
@login_required
def create_service_request():
    payload = request.get_json(silent=True) or {}
    item = ServiceRequestService.create_service_request(
        current_actor(),
        subscription_id=payload.get("subscription_id"),
        request_type=payload.get("request_type"),
        description=payload.get("description"),
        scheduled_time=payload.get("scheduled_time"),
    )
    return jsonify({"message": "Service request created successfully", "request": _service_request_json(item)}), 201


@api_service_request_bp.get("/agent/dashboard")
@login_required
@role_required("service_agent")
def agent_dashboard():
    return jsonify(ServiceRequestService.agent_dashboard(current_actor()))


@api_service_request_bp.get("/<int:request_id>")
@login_required
def get_service_request(request_id):
    item = ServiceRequestService.get_for_actor(current_actor(), request_id)
    return jsonify(_service_request_json(item))


@api_service_request_bp.patch("/<int:request_id>")
@login_required
def update_service_request(request_id):
    payload = request.get_json(silent=True) or {}
    item = ServiceRequestService.update_service_request(current_actor(), request_id, payload)
    return jsonify({"message": "Service request updated successfully", "request": _service_request_json(item)})


@api_service_request_bp.post("/<int:request_id>/cancel")
@login_required
def cancel_service_request(request_id):
    item = ServiceRequestService.cancel_service_request(current_actor(), request_id)
    return jsonify({"message": "Service request cancelled successfully", "request": _service_request_json(item)})


@api_service_request_bp.post("/<int:request_id>/feedback")
@login_required
def submit_feedback(request_id):
    payload = request.get_json(silent=True) or {}
    item = ServiceRequestService.submit_feedback(
        current_actor(), request_id, payload.get("rating"), payload.get("feedback")
    )
    return jsonify(
        {"message": "Feedback submitted successfully", "rating": item.rating, "feedback": item.feedback}
    )


@api_service_request_bp.patch("/<int:request_id>/assign")
@login_required
def assign_agent(request_id):
    payload = request.get_json(silent=True) or {}
    item = ServiceRequestService.assign_agent(current_actor(), request_id, payload.get("agent_id"))
    return jsonify({"message": "Service agent assigned successfully", "request": _service_request_json(item)})
