# =============================================================================
# app/ - FastAPI Application Package
# =============================================================================
# This package contains the FastAPI web application:
# - main.py: App entry point, middleware setup, error handlers
# - config.py: Environment variable loading and settings
# - auth/: Handshake authentication (JWT)
# - websocket/: Relay connections, presence and event routing
# - routers/: HTTP endpoints (health checks)
#
# The app layer is thin - it handles transport concerns and delegates
# relay logic to the core/ package.
# =============================================================================

__version__ = "0.1.0"
