"""
SharePic photo-sharing backend.

This package provides a FastAPI application over an object store for
uploaded image bytes and a partitioned document store for photos,
comments and ratings. Both backends have in-memory implementations so
the service can run and be tested without external infrastructure.
"""
