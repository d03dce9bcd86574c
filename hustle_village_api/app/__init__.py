"""
Application package initializer.

The project is organised by concern: ``core`` holds configuration,
persistence, identity and storage adapters; ``services`` holds the
business rules for users, listings, deletion requests and images;
``schemas`` holds the API payloads; and ``api/v1`` exposes the HTTP
routes.  Versioning is handled by grouping routers under the
``api/<version>/`` hierarchy.
"""

from .main import app  # noqa: F401
