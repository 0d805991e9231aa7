"""
Backend package for the blog CMS.

This package provides a FastAPI application with database, session and
asset storage abstractions so the same content rules run against in-memory
backends in development and tests, and against Postgres, Redis and
S3-compatible storage in production.
"""
