# =============================================================================
# app/ - FastAPI Web Server Package
# =============================================================================
# This package contains the web server:
# - server.py: Bootstrap sequence, listener, console entry point
# - main.py: Application factory, middleware order, error handlers
# - config.py: Environment variable loading and settings
# - lifecycle.py: Termination signals and graceful shutdown
# - middleware/: One module per request middleware stage
# - routers/: Route definitions
# =============================================================================
