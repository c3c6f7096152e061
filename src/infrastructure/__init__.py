"""
Infrastructure layer - external service integrations.

Each module wraps an external dependency:
- database: Relational persistence (SQLAlchemy)
- security: Password hashing (bcrypt) and access tokens (JWT)
- notifications: Outbound message delivery

These wrappers translate between external formats and our domain models.
"""
