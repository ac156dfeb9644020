# =============================================================================
# tests/ - Test Suite
# =============================================================================
# This package contains all tests for the web server:
# - test_config.py: Settings loading and validation
# - test_database.py: Connection state machine and release guarantee
# - test_session.py: Session save rules and the memory store
# - test_middleware.py: Individual middleware stages
# - test_app.py: Routes, middleware order, environment behavior
# - test_lifecycle.py: Termination signals and graceful shutdown
# - test_server.py: Full startup against a real listener
#
# Run tests with: pytest
# =============================================================================
