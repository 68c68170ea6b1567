from crm.services.crm.contact_service import ContactService
from crm.services.crm.lead_service import LeadService
from crm.services.crm.job_service import JobService
from crm.services.crm.estimate_service import EstimateService, compute_totals

__all__ = ["ContactService", "LeadService", "JobService", "EstimateService", "compute_totals"]
