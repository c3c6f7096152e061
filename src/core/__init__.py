"""
Core business logic for the subscription back office.

This module is framework-agnostic - it doesn't import FastAPI, SQLAlchemy,
or any infrastructure concerns. This separation means we can test the
billing rules in isolation and swap storage if needed.
"""
