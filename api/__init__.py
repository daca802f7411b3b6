"""HTTP layer — middleware, exception handlers, service routes."""
