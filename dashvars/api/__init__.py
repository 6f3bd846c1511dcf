"""HTTP API over a templating session."""

from dashvars.api.app import create_app

__all__ = ["create_app"]
