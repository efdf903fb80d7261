"""FastAPI HTTP layer package.

Public re-export so callers can write::

    from coascan.api import app

    uvicorn coascan.api:app --reload
"""

from coascan.api.app import app

__all__ = ["app"]
