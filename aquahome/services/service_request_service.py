from flask import current_app
from sqlalchemy import func

from aquahome.errors import InvalidState, NotFound, PermissionDenied, ValidationError
from aquahome.extensions import db
from aquahome.models import ServiceRequest, Subscription
from aquahome.models.base import utcnow
from aquahome.models.service_request import (
    SERVICE_ASSIGNED,
    SERVICE_CANCELLED,
    SERVICE_COMPLETED,
    SERVICE_PENDING,
    SERVICE_SCHEDULED,
)
from aquahome.models.subscription import SUBSCRIPTION_ACTIVE
from aquahome.permissions import Role, allowed_update_fields, require
from aquahome.services.ledger import transaction
from aquahome.services.notification_service import NotificationService
from aquahome.services.staff_service import StaffService
from aquahome.utils import parse_datetime, parse_positive_int

SERVICE_TRANSITIONS = {
    SERVICE_PENDING: frozenset({SERVICE_ASSIGNED, SERVICE_CANCELLED}),
    SERVICE_ASSIGNED: frozenset({SERVICE_SCHEDULED, SERVICE_CANCELLED}),
    SERVICE_SCHEDULED: frozenset({SERVICE_COMPLETED, SERVICE_CANCELLED}),
    SERVICE_COMPLETED: frozenset(),
    SERVICE_CANCELLED: frozenset(),
}

TERMINAL_STATES = frozenset({SERVICE_COMPLETED, SERVICE_CANCELLED})
CANCELLABLE_STATES = frozenset({SERVICE_PENDING, SERVICE_ASSIGNED, SERVICE_SCHEDULED})
OPEN_AGENT_STATES = frozenset({SERVICE_ASSIGNED, SERVICE_SCHEDULED})

UPDATE_FIELDS = ("status", "agent_id", "scheduled_time", "completion_time", "notes")


def _notify(user_id, title, message, request_id, notification_type="service_request"):
    NotificationService.push(
        user_id,
        title,
        message,
        notification_type=notification_type,
        related_id=request_id,
        related_type="service_request",
    )


class ServiceRequestService:
    """
    Lifecycle of post-sale service visits.

    Every mutation and the notifications it produces commit together; a failed
    notification insert rolls the state change back.
    """

    @staticmethod
    def _scoped_query(actor):
        query = ServiceRequest.query
        if actor.role == Role.ADMIN:
            return query
        if actor.role == Role.FRANCHISE_OWNER:
            return query.join(Subscription, Subscription.id == ServiceRequest.subscription_id).filter(
                Subscription.franchise_id.in_(StaffService.owned_franchise_ids(actor.id))
            )
        if actor.role == Role.SERVICE_AGENT:
            return query.filter(ServiceRequest.service_agent_id == actor.id)
        return query.filter(ServiceRequest.customer_id == actor.id)

    @staticmethod
    def _in_scope(actor, service_request):
        if actor.role == Role.ADMIN:
            return True
        if actor.role == Role.FRANCHISE_OWNER:
            franchise = service_request.subscription.franchise if service_request.subscription else None
            return franchise is not None and franchise.owner_id == actor.id
        if actor.role == Role.SERVICE_AGENT:
            return service_request.service_agent_id == actor.id
        return service_request.customer_id == actor.id

    @staticmethod
    def _locked(request_id):
        service_request = db.session.get(ServiceRequest, request_id, with_for_update=True)
        if not service_request:
            raise NotFound("Service request not found.")
        return service_request

    @staticmethod
    def list_for_actor(actor):
        require(actor, "view_service_requests")
        return (
            ServiceRequestService._scoped_query(actor)
            .order_by(ServiceRequest.created_at.desc(), ServiceRequest.id.desc())
            .all()
        )

    @staticmethod
    def get_for_actor(actor, request_id):
        require(actor, "view_service_requests")
        request_id = parse_positive_int(request_id, "Service request ID")
        service_request = ServiceRequestService._scoped_query(actor).filter(ServiceRequest.id == request_id).first()
        if not service_request:
            raise NotFound("Service request not found.")
        return service_request

    @staticmethod
    def create_service_request(actor, subscription_id, request_type, description, scheduled_time):
        require(actor, "create_service_request")

        subscription_id = parse_positive_int(subscription_id, "Subscription ID")
        request_type = (request_type or "").strip()
        description = (description or "").strip()
        if not request_type or not description:
            raise ValidationError("Request type and description are required.")
        scheduled_at = parse_datetime(scheduled_time, "scheduled time")

        with transaction("service request creation") as session:
            subscription = Subscription.query.filter_by(id=subscription_id, customer_id=actor.id).first()
            if not subscription:
                raise NotFound("Subscription not found or doesn't belong to you.")
            if subscription.status != SUBSCRIPTION_ACTIVE:
                raise InvalidState(
                    "Cannot create service request for inactive subscription.",
                    current_state=subscription.status,
                )

            service_request = ServiceRequest(
                customer_id=actor.id,
                subscription_id=subscription.id,
                type=request_type,
                status=SERVICE_PENDING,
                description=description,
                scheduled_time=scheduled_at,
            )
            session.add(service_request)
            session.flush()

            _notify(
                actor.id,
                "Service Request Created",
                "Your service request has been created and is pending assignment.",
                service_request.id,
            )
            franchise = subscription.franchise
            if franchise is not None and franchise.owner_id:
                _notify(
                    franchise.owner_id,
                    "New Service Request",
                    "A new service request has been created and needs your attention.",
                    service_request.id,
                )

        current_app.logger.info(
            "Service request %s created by customer %s for subscription %s",
            service_request.id,
            actor.id,
            subscription_id,
        )
        return service_request

    @staticmethod
    def _clean_changes(changes):
        cleaned = {}
        for field in UPDATE_FIELDS:
            value = (changes or {}).get(field)
            if isinstance(value, str):
                value = value.strip()
            if value is None or value == "":
                continue
            cleaned[field] = value
        return cleaned

    @staticmethod
    def update_service_request(actor, request_id, changes):
        require(actor, "update_service_request")
        if actor.role == Role.CUSTOMER:
            if not ServiceRequestService._is_plain_cancel(changes):
                raise PermissionDenied("Customers can only cancel service requests.")
            request_id = parse_positive_int(request_id, "Service request ID")
            return ServiceRequestService._customer_cancel_pending(actor, request_id)
        request_id = parse_positive_int(request_id, "Service request ID")

        changes = ServiceRequestService._clean_changes(changes)
        if not changes:
            raise ValidationError("No valid updates provided.")
        forbidden = set(changes) - allowed_update_fields(actor.role)
        if forbidden:
            raise PermissionDenied(f"You cannot update {', '.join(sorted(forbidden))} on this service request.")

        status = changes.get("status")
        if status is not None:
            status = str(status).lower()
            if status not in SERVICE_TRANSITIONS:
                raise ValidationError("Invalid service request status.")

        scheduled_at = completed_at = None
        if "scheduled_time" in changes:
            scheduled_at = parse_datetime(changes["scheduled_time"], "scheduled time")
        if "completion_time" in changes:
            completed_at = parse_datetime(changes["completion_time"], "completion time")

        with transaction("service request update"):
            service_request = ServiceRequestService._locked(request_id)
            if not ServiceRequestService._in_scope(actor, service_request):
                raise PermissionDenied("You don't have permission to update this service request.")
            if service_request.status in TERMINAL_STATES:
                raise InvalidState(
                    f"Service request is {service_request.status} and can no longer be updated.",
                    current_state=service_request.status,
                )

            agent = None
            if "agent_id" in changes:
                agent = StaffService.assignable_agent(actor, changes["agent_id"])
                service_request.service_agent_id = agent.id
                if service_request.status == SERVICE_PENDING:
                    service_request.status = SERVICE_ASSIGNED

            if status is not None and status != service_request.status:
                if status not in SERVICE_TRANSITIONS[service_request.status]:
                    raise InvalidState(
                        f"Cannot move service request from {service_request.status} to {status}.",
                        current_state=service_request.status,
                    )
                service_request.status = status

            if scheduled_at is not None:
                service_request.scheduled_time = scheduled_at
            if completed_at is not None:
                service_request.completion_time = completed_at
            elif service_request.status == SERVICE_COMPLETED and service_request.completion_time is None:
                service_request.completion_time = utcnow()
            if "notes" in changes:
                service_request.notes = str(changes["notes"])

            db.session.flush()

            if status is not None:
                _notify(
                    service_request.customer_id,
                    "Service Request Updated",
                    f"Your service request status has been updated to {service_request.status}.",
                    service_request.id,
                )
            if agent is not None:
                _notify(
                    service_request.customer_id,
                    "Service Agent Assigned",
                    "A service agent has been assigned to your service request.",
                    service_request.id,
                )
                _notify(
                    agent.id,
                    "New Service Assignment",
                    f"You have been assigned to service request #{service_request.id}.",
                    service_request.id,
                )
            if scheduled_at is not None:
                _notify(
                    service_request.customer_id,
                    "Service Visit Scheduled",
                    f"Your service request has been scheduled for {scheduled_at.isoformat()}.",
                    service_request.id,
                )

        current_app.logger.info(
            "Service request %s updated by %s %s: %s",
            service_request.id,
            actor.role.value,
            actor.id,
            ", ".join(sorted(changes)),
        )
        return service_request

    @staticmethod
    def _is_plain_cancel(changes):
        if not isinstance(changes, dict):
            return False
        given = {k: v for k, v in changes.items() if v is not None}
        if set(given) != {"status"}:
            return False
        return str(given["status"]).strip().lower() == SERVICE_CANCELLED

    @staticmethod
    def _customer_cancel_pending(actor, request_id):
        with transaction("service request update"):
            service_request = ServiceRequestService._locked(request_id)
            if service_request.customer_id != actor.id:
                raise PermissionDenied("You don't have permission to update this service request.")
            if service_request.status != SERVICE_PENDING:
                raise PermissionDenied("You can only cancel pending service requests.")

            service_request.status = SERVICE_CANCELLED
            db.session.flush()
            _notify(
                actor.id,
                "Service Request Updated",
                f"Your service request status has been updated to {SERVICE_CANCELLED}.",
                service_request.id,
            )

        current_app.logger.info("Service request %s cancelled by customer %s", service_request.id, actor.id)
        return service_request

    @staticmethod
    def cancel_service_request(actor, request_id):
        require(actor, "cancel_service_request")
        request_id = parse_positive_int(request_id, "Service request ID")

        with transaction("service request cancellation"):
            if actor.role == Role.CUSTOMER:
                service_request = (
                    ServiceRequest.query.filter_by(id=request_id, customer_id=actor.id).with_for_update().first()
                )
                if not service_request:
                    raise NotFound("Service request not found or doesn't belong to you.")
                agent_message = "A service request assigned to you has been cancelled by the customer."
            else:
                service_request = ServiceRequestService._locked(request_id)
                if not ServiceRequestService._in_scope(actor, service_request):
                    raise PermissionDenied("You don't have permission to cancel this service request.")
                agent_message = "A service request assigned to you has been cancelled."

            if service_request.status not in CANCELLABLE_STATES:
                raise InvalidState(
                    "Service request cannot be cancelled in its current state.",
                    current_state=service_request.status,
                )

            service_request.status = SERVICE_CANCELLED
            db.session.flush()

            _notify(
                service_request.customer_id,
                "Service Request Cancelled",
                "Your service request has been cancelled.",
                service_request.id,
            )
            if service_request.service_agent_id:
                _notify(
                    service_request.service_agent_id,
                    "Service Request Cancelled",
                    agent_message,
                    service_request.id,
                )

        current_app.logger.info(
            "Service request %s cancelled by %s %s", service_request.id, actor.role.value, actor.id
        )
        return service_request

    @staticmethod
    def submit_feedback(actor, request_id, rating, feedback):
        require(actor, "submit_service_feedback")
        request_id = parse_positive_int(request_id, "Service request ID")

        if isinstance(rating, bool):
            raise ValidationError("Rating must be between 1 and 5.")
        try:
            rating = int(rating)
        except (TypeError, ValueError) as exc:
            raise ValidationError("Rating must be between 1 and 5.") from exc
        if not 1 <= rating <= 5:
            raise ValidationError("Rating must be between 1 and 5.")
        feedback = (feedback or "").strip()
        if not feedback:
            raise ValidationError("Feedback is required.")

        with transaction("service feedback"):
            service_request = (
                ServiceRequest.query.filter_by(id=request_id, customer_id=actor.id, status=SERVICE_COMPLETED)
                .with_for_update()
                .first()
            )
            if not service_request:
                raise NotFound("Service request not found, doesn't belong to you, or is not completed.")

            service_request.rating = rating
            service_request.feedback = feedback
            db.session.flush()

            if service_request.service_agent_id:
                _notify(
                    service_request.service_agent_id,
                    "Service Feedback Received",
                    f"You received a {rating}-star rating for your service.",
                    service_request.id,
                    notification_type="service_feedback",
                )

        current_app.logger.info("Feedback (%s stars) recorded on service request %s", rating, service_request.id)
        return service_request

    @staticmethod
    def assign_agent(actor, request_id, agent_id):
        require(actor, "assign_service_agent")
        if agent_id is None or agent_id == "":
            raise ValidationError("Service agent ID is required.")
        return ServiceRequestService.update_service_request(actor, request_id, {"agent_id": agent_id})

    @staticmethod
    def agent_dashboard(actor):
        require(actor, "agent_dashboard")
        rows = (
            db.session.query(ServiceRequest.status, func.count(ServiceRequest.id))
            .filter(ServiceRequest.service_agent_id == actor.id)
            .group_by(ServiceRequest.status)
            .all()
        )
        counts = dict(rows)
        return {
            "total_tasks": sum(counts.values()),
            "completed_tasks": counts.get(SERVICE_COMPLETED, 0),
            "pending_tasks": sum(counts.get(state, 0) for state in OPEN_AGENT_STATES),
        }
