"""
auth — User authentication module.

Provides:
  • Password hashing (bcrypt) and opaque token generation
  • Register / Login / password-reset / profile API routes
  • ``get_current_user`` FastAPI dependency
  • The error taxonomy shared with the storage layer
"""
