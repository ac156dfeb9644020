# =============================================================================
# app/routers/index.py - Root Endpoint
# =============================================================================
# The server's only route. Everything else is answered by static files or
# the framework's default 404.
# =============================================================================

from fastapi import APIRouter
from fastapi.responses import HTMLResponse

router = APIRouter()

GREETING = "<h3>Web server powered by FastAPI and Uvicorn</h3>"


@router.get("/", response_class=HTMLResponse)
async def index():
    """Index page - announces the server."""
    return GREETING
