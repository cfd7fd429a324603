"""
Core building blocks shared by every Fiesta app.

BaseModel, exception hierarchy, structured logging, request context
middleware, JWT authentication and the DRF permission classes that
enforce venue-scoped RBAC decisions.
"""
