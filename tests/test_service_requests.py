import pytest
from sqlalchemy.exc import SQLAlchemyError

from aquahome.errors import InvalidState, NotFound, PermissionDenied, StorageError, ValidationError
from aquahome.extensions import db
from aquahome.models import Notification, ServiceRequest
from aquahome.services import ServiceRequestService, notification_service


def _reload(item):
    db.session.expire_all()
    return db.session.get(ServiceRequest, item.id)


def _notes_for(user):
    return Notification.query.filter_by(user_id=user.id).order_by(Notification.id).all()


class TestCreate:
    def test_creates_pending_request_and_notifies(self, actors, seed, subscription):
        item = ServiceRequestService.create_service_request(
            actors.customer, subscription.id, "maintenance", "Water tastes odd", "2026-11-02T10:30:00Z"
        )

        assert item.status == "pending"
        assert item.customer_id == seed.customer.id
        assert item.scheduled_time is not None
        assert [n.title for n in _notes_for(seed.customer)] == ["Service Request Created"]
        assert [n.title for n in _notes_for(seed.owner)] == ["New Service Request"]

    def test_inactive_subscription(self, actors, subscription):
        subscription.status = "suspended"
        db.session.commit()

        with pytest.raises(InvalidState):
            ServiceRequestService.create_service_request(
                actors.customer, subscription.id, "repair", "Leak", "2026-11-02T10:30:00"
            )
        assert ServiceRequest.query.count() == 0

    def test_foreign_subscription(self, actors, subscription):
        with pytest.raises(NotFound):
            ServiceRequestService.create_service_request(
                actors.other_customer, subscription.id, "repair", "Leak", "2026-11-02T10:30:00"
            )

    def test_bad_schedule_and_missing_fields(self, actors, subscription):
        with pytest.raises(ValidationError):
            ServiceRequestService.create_service_request(actors.customer, subscription.id, "repair", "Leak", "soon")
        with pytest.raises(ValidationError):
            ServiceRequestService.create_service_request(
                actors.customer, subscription.id, "", "Leak", "2026-11-02T10:30:00"
            )

    def test_staff_cannot_create(self, actors, subscription):
        with pytest.raises(PermissionDenied):
            ServiceRequestService.create_service_request(
                actors.admin, subscription.id, "repair", "Leak", "2026-11-02T10:30:00"
            )

    def test_notification_failure_rolls_back_creation(self, actors, subscription, monkeypatch):
        def broken_notification(**_kwargs):
            raise SQLAlchemyError("notifications table unavailable")

        monkeypatch.setattr(notification_service, "Notification", broken_notification)

        with pytest.raises(StorageError):
            ServiceRequestService.create_service_request(
                actors.customer, subscription.id, "repair", "Leak", "2026-11-02T10:30:00"
            )
        assert ServiceRequest.query.count() == 0


class TestAgentAssignment:
    def test_assignment_advances_pending_to_assigned(self, actors, seed, make_request):
        item = make_request()

        ServiceRequestService.update_service_request(actors.owner, item.id, {"agent_id": seed.agent.id})

        item = _reload(item)
        assert item.status == "assigned"
        assert item.service_agent_id == seed.agent.id
        assert [n.title for n in _notes_for(seed.customer)] == ["Service Agent Assigned"]
        assert [n.title for n in _notes_for(seed.agent)] == ["New Service Assignment"]

    def test_assign_agent_wrapper(self, actors, seed, make_request):
        item = make_request()
        ServiceRequestService.assign_agent(actors.admin, item.id, seed.other_agent.id)
        assert _reload(item).service_agent_id == seed.other_agent.id

    def test_owner_limited_to_own_agents(self, actors, seed, make_request):
        item = make_request()
        with pytest.raises(ValidationError):
            ServiceRequestService.update_service_request(actors.owner, item.id, {"agent_id": seed.other_agent.id})
        assert _reload(item).status == "pending"

    def test_target_must_be_service_agent(self, actors, seed, make_request):
        item = make_request()
        with pytest.raises(ValidationError):
            ServiceRequestService.update_service_request(actors.admin, item.id, {"agent_id": seed.customer.id})

    def test_owner_outside_franchise(self, actors, seed, make_request):
        item = make_request()
        with pytest.raises(PermissionDenied):
            ServiceRequestService.update_service_request(
                actors.other_owner, item.id, {"agent_id": seed.other_agent.id}
            )

    def test_agents_cannot_reassign(self, actors, seed, make_request):
        item = make_request(status="assigned", agent=seed.agent)
        with pytest.raises(PermissionDenied):
            ServiceRequestService.update_service_request(actors.agent, item.id, {"agent_id": seed.agent.id})
        with pytest.raises(PermissionDenied):
            ServiceRequestService.assign_agent(actors.agent, item.id, seed.agent.id)


class TestStaffTransitions:
    def test_agent_walks_request_to_completion(self, actors, seed, make_request):
        item = make_request(status="assigned", agent=seed.agent)

        ServiceRequestService.update_service_request(
            actors.agent, item.id, {"status": "scheduled", "scheduled_time": "2026-11-03T09:00:00+05:30"}
        )
        assert _reload(item).status == "scheduled"

        ServiceRequestService.update_service_request(actors.agent, item.id, {"status": "completed", "notes": "Done"})
        item = _reload(item)
        assert item.status == "completed"
        assert item.completion_time is not None
        assert item.notes == "Done"
        titles = [n.title for n in _notes_for(seed.customer)]
        assert titles == ["Service Request Updated", "Service Visit Scheduled", "Service Request Updated"]

    def test_skipping_a_state_is_rejected(self, actors, seed, make_request):
        item = make_request(status="assigned", agent=seed.agent)
        with pytest.raises(InvalidState) as exc_info:
            ServiceRequestService.update_service_request(actors.agent, item.id, {"status": "completed"})
        assert exc_info.value.current_state == "assigned"
        assert _reload(item).status == "assigned"

    def test_unknown_status(self, actors, make_request):
        item = make_request()
        with pytest.raises(ValidationError):
            ServiceRequestService.update_service_request(actors.admin, item.id, {"status": "paused"})

    @pytest.mark.parametrize("terminal", ["completed", "cancelled"])
    def test_terminal_requests_are_frozen(self, actors, seed, make_request, terminal):
        item = make_request(status=terminal, agent=seed.agent)
        with pytest.raises(InvalidState):
            ServiceRequestService.update_service_request(actors.admin, item.id, {"notes": "late edit"})
        assert _reload(item).notes is None

    def test_agent_outside_assignment(self, actors, seed, make_request):
        item = make_request(status="assigned", agent=seed.agent)
        with pytest.raises(PermissionDenied):
            ServiceRequestService.update_service_request(actors.other_agent, item.id, {"notes": "hi"})

    def test_empty_update(self, actors, make_request):
        item = make_request()
        with pytest.raises(ValidationError):
            ServiceRequestService.update_service_request(actors.admin, item.id, {"notes": "  ", "status": None})

    def test_missing_request(self, actors, seed):
        with pytest.raises(NotFound):
            ServiceRequestService.update_service_request(actors.admin, 999, {"notes": "x"})


class TestCustomerRules:
    def test_customer_cancels_pending_request(self, actors, seed, make_request):
        item = make_request()
        ServiceRequestService.update_service_request(actors.customer, item.id, {"status": "cancelled"})
        assert _reload(item).status == "cancelled"

    def test_customer_cannot_cancel_assigned_through_update(self, actors, seed, make_request):
        item = make_request(status="assigned", agent=seed.agent)
        with pytest.raises(PermissionDenied):
            ServiceRequestService.update_service_request(actors.customer, item.id, {"status": "cancelled"})
        assert _reload(item).status == "assigned"

    def test_customer_cannot_set_other_fields(self, actors, make_request):
        item = make_request()
        with pytest.raises(PermissionDenied):
            ServiceRequestService.update_service_request(actors.customer, item.id, {"status": "scheduled"})
        with pytest.raises(PermissionDenied):
            ServiceRequestService.update_service_request(actors.customer, item.id, {"notes": "please hurry"})

    @pytest.mark.parametrize(
        "changes",
        [
            {},
            {"status": ""},
            {"status": "bogus"},
            {"notes": "please hurry"},
            {"status": "cancelled", "notes": "changed my mind"},
            {"status": "cancelled", "agent_id": 1},
        ],
    )
    def test_customer_update_other_than_cancel_is_denied(self, actors, make_request, changes):
        item = make_request()
        with pytest.raises(PermissionDenied):
            ServiceRequestService.update_service_request(actors.customer, item.id, changes)
        item = _reload(item)
        assert (item.status, item.notes) == ("pending", None)

    def test_customer_cancel_ignores_case_and_padding(self, actors, make_request):
        item = make_request()
        ServiceRequestService.update_service_request(actors.customer, item.id, {"status": " Cancelled "})
        assert _reload(item).status == "cancelled"

    def test_customer_cannot_touch_foreign_request(self, actors, make_request):
        item = make_request()
        with pytest.raises(PermissionDenied):
            ServiceRequestService.update_service_request(actors.other_customer, item.id, {"status": "cancelled"})


class TestCancel:
    def test_customer_cancels_scheduled_request_and_agent_hears(self, actors, seed, make_request):
        item = make_request(status="scheduled", agent=seed.agent)

        ServiceRequestService.cancel_service_request(actors.customer, item.id)

        assert _reload(item).status == "cancelled"
        assert [n.title for n in _notes_for(seed.customer)] == ["Service Request Cancelled"]
        assert [n.title for n in _notes_for(seed.agent)] == ["Service Request Cancelled"]

    def test_completed_cannot_be_cancelled(self, actors, seed, make_request):
        item = make_request(status="completed", agent=seed.agent)
        with pytest.raises(InvalidState):
            ServiceRequestService.cancel_service_request(actors.customer, item.id)

    def test_foreign_request_is_not_found(self, actors, make_request):
        item = make_request()
        with pytest.raises(NotFound):
            ServiceRequestService.cancel_service_request(actors.other_customer, item.id)

    def test_owner_cancels_within_franchise(self, actors, make_request):
        item = make_request()
        with pytest.raises(PermissionDenied):
            ServiceRequestService.cancel_service_request(actors.other_owner, item.id)
        ServiceRequestService.cancel_service_request(actors.owner, item.id)
        assert _reload(item).status == "cancelled"


class TestFeedback:
    def test_feedback_on_completed_request(self, actors, seed, make_request):
        item = make_request(status="completed", agent=seed.agent)

        ServiceRequestService.submit_feedback(actors.customer, item.id, 4, "Quick and tidy")

        item = _reload(item)
        assert (item.rating, item.feedback) == (4, "Quick and tidy")
        note = _notes_for(seed.agent)[0]
        assert note.type == "service_feedback"
        assert note.message == "You received a 4-star rating for your service."

    def test_resubmission_overwrites(self, actors, seed, make_request):
        item = make_request(status="completed", agent=seed.agent)
        ServiceRequestService.submit_feedback(actors.customer, item.id, 2, "Late")
        ServiceRequestService.submit_feedback(actors.customer, item.id, 5, "Fixed properly on revisit")
        assert _reload(item).rating == 5

    @pytest.mark.parametrize("rating", [0, 6, "five", None, True])
    def test_rating_range(self, actors, seed, make_request, rating):
        item = make_request(status="completed", agent=seed.agent)
        with pytest.raises(ValidationError):
            ServiceRequestService.submit_feedback(actors.customer, item.id, rating, "ok")

    def test_only_completed_requests(self, actors, seed, make_request):
        item = make_request(status="scheduled", agent=seed.agent)
        with pytest.raises(NotFound):
            ServiceRequestService.submit_feedback(actors.customer, item.id, 5, "Great")


class TestReadSide:
    def test_listing_is_scoped(self, actors, seed, make_request):
        mine = make_request(status="assigned", agent=seed.agent)
        make_request()

        assert len(ServiceRequestService.list_for_actor(actors.admin)) == 2
        assert len(ServiceRequestService.list_for_actor(actors.owner)) == 2
        assert ServiceRequestService.list_for_actor(actors.other_owner) == []
        assert [r.id for r in ServiceRequestService.list_for_actor(actors.agent)] == [mine.id]
        assert ServiceRequestService.list_for_actor(actors.other_customer) == []

    def test_get_outside_scope_is_not_found(self, actors, make_request):
        item = make_request()
        assert ServiceRequestService.get_for_actor(actors.customer, item.id).id == item.id
        with pytest.raises(NotFound):
            ServiceRequestService.get_for_actor(actors.other_customer, item.id)

    def test_agent_dashboard_counts(self, actors, seed, make_request):
        make_request(status="assigned", agent=seed.agent)
        make_request(status="scheduled", agent=seed.agent)
        make_request(status="completed", agent=seed.agent)
        make_request(status="cancelled", agent=seed.agent)

        assert ServiceRequestService.agent_dashboard(actors.agent) == {
            "total_tasks": 4,
            "completed_tasks": 1,
            "pending_tasks": 2,
        }
        with pytest.raises(PermissionDenied):
            ServiceRequestService.agent_dashboard(actors.customer)
