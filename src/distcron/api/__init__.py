"""distcron HTTP API (FastAPI).

Run with ``distcron serve`` or ``uvicorn distcron.api:create_app --factory``.
"""

from distcron.api.app import create_app

__all__ = ["create_app"]
