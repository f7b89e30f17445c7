# =============================================================================
# core/ - Relay Logic Package
# =============================================================================
# This package contains framework-agnostic relay logic:
# - models/: Pydantic schemas for relay records and socket events
# - services/: Presence registry, message relay, signaling relay
#
# Code in this package should NOT import from FastAPI.
# Services talk to clients only through the Outbox protocol, which keeps
# them testable without sockets.
# =============================================================================
