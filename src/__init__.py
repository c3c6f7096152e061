"""
Super Sheets Admin API - back office for coach subscriptions.

This package contains the complete application:
- core: Framework-agnostic billing rules (subscriptions, payments, reports)
- infrastructure: Database, security and notification delivery
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
