"""Persistence — ORM models, engine/session factory, store helpers."""
