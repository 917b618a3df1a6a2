"""
Schemas module - Request/Response schemas for API endpoints.

Services pass plain dicts around; schemas are the API contract
(what the client sends and receives).
"""
