"""
Exterior CRM - multi-tenant CRM backend for exterior-finishing contractors.
"""
