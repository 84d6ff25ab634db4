"""Core utilities and shared primitives.

Configuration, filename/content-type validation, and the middleware and
exception handlers a consuming FastAPI app installs.
"""
