"""
Backend package for the friend map.

This package provides a FastAPI application serving the public map page,
the admin panel, and a small JSON API over a single ``friends`` table.
"""
