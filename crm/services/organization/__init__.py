from crm.services.organization.organization_service import OrganizationService, is_usable

__all__ = ["OrganizationService", "is_usable"]
