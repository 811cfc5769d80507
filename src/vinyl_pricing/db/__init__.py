"""Persistence: ORM schema and session factory."""
