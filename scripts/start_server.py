#!/usr/bin/env python3
# =============================================================================
# scripts/start_server.py - Web Server Entry Point
# =============================================================================
# Starts the web server from a source checkout.
#
# Usage:
#   python scripts/start_server.py
#
#   # Or use the installed console script
#   webserver
#
# Prerequisites:
#   - DATABASE and SECRET_KEY_ONE must be set (.env file)
# =============================================================================

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.server import main


if __name__ == "__main__":
    main()
