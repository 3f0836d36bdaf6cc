"""
Gigboard API Models

Pydantic request/response schemas live in this package; SQLAlchemy ORM
models live in ``gigboard.models.db``.
"""
