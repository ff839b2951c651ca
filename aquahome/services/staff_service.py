from aquahome.errors import ValidationError
from aquahome.extensions import db
from aquahome.models import Franchise, User
from aquahome.permissions import Role


class StaffService:
    @staticmethod
    def owned_franchise_ids(owner_id):
        return db.session.query(Franchise.id).filter(Franchise.owner_id == owner_id)

    @staticmethod
    def assignable_agent(actor, agent_id):
        """Admins may pick any service agent; franchise owners only their own."""
        try:
            agent_id = int(agent_id)
        except (TypeError, ValueError) as exc:
            raise ValidationError("Invalid service agent ID.") from exc

        query = User.query.filter(User.id == agent_id, User.role == Role.SERVICE_AGENT.value)
        if actor.role == Role.FRANCHISE_OWNER:
            query = query.filter(User.franchise_id.in_(StaffService.owned_franchise_ids(actor.id)))
        agent = query.first()
        if not agent:
            raise ValidationError("Invalid service agent ID.")
        return agent
