from crm.services.invitation.invitation_service import InvitationService
from crm.services.invitation.token_hasher import TokenHasher

__all__ = ["InvitationService", "TokenHasher"]
