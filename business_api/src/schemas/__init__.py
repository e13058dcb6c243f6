"""
Public Pydantic schemas used by FastAPI routes and tests.

Schemas are grouped by area (auth, access configuration, sales modules) and
include common reusable models such as the error envelope.
"""

from .common import MessageResponse  # noqa: F401
