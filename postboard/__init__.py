"""
Postboard: a small multi-user post sharing service.

Authenticated users create, edit and delete short text posts; every post is
publicly readable. The package provides a FastAPI application, a post store
abstraction (SQLAlchemy or in-memory) and an adapter for the identity
provider that issues user sessions.
"""
