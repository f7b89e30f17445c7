# =============================================================================
# tests/ - Test Suite
# =============================================================================
# This package contains all tests for the realtime relay:
# - test_models.py: Wire event parsing and serialization
# - test_presence_registry.py: Presence map, broadcasts, concurrency
# - test_relays.py: Message and signaling relays
# - test_auth_gate.py: Handshake JWT verification
# - test_connection_manager.py: Connection lifecycle and dispatch
# - test_websocket_routes.py: End-to-end through the FastAPI app
#
# Run tests with: pytest
# =============================================================================
