from crm.services.user.user_service import UserService

__all__ = ["UserService"]
