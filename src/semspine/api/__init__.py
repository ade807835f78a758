"""REST transport for semantic-spine: ``create_app()`` builds the FastAPI app."""

from semspine.api.app import create_app

__all__ = ["create_app"]
