"""FastAPI application serving one templating session."""

from fastapi import FastAPI

from dashvars import __version__
from dashvars.api.routes import variables
from dashvars.session import TemplatingSession
from dashvars.utilities.logging import setup_logging


def create_app(session: TemplatingSession | None = None, api_prefix: str = "/api") -> FastAPI:
    """Build the app. The session is shared by every request."""
    setup_logging()

    app = FastAPI(title="dashvars API", version=__version__)
    app.state.session = session or TemplatingSession()
    app.include_router(variables.router, prefix=api_prefix, tags=["variables"])
    return app
