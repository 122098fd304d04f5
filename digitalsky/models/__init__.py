"""Pydantic and SQLAlchemy models."""
