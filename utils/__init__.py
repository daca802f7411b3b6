"""Shared schemas and validators."""
