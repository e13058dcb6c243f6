"""
Core application utilities: settings, logging, domain errors, token handling
and FastAPI dependencies (tenant extraction, tenant-scoped DB session, current
user, module permission and visibility resolution).
"""
