"""
CRM services.
"""
