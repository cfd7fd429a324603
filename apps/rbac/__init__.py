"""
RBAC (Role-Based Access Control) application.

Provides venue-scoped access control with:
- A global permission catalog
- Per-venue system and custom roles
- Per-user grant/revoke overrides (revoke wins)
- Authorization decisions with owner bypass and own/all scopes
- Audit logging of every RBAC mutation
"""
