#!/usr/bin/env python3
# =============================================================================
# scripts/issue_token.py - Development Token Minting
# =============================================================================
# Prints a JWT the relay will accept, signed with JWT_SECRET from .env.
# Real tokens come from the account service; this is for local testing with
# a WebSocket client.
#
# Usage:
#   python scripts/issue_token.py <user_id> [expires_minutes]
#
#   # Then connect:
#   websocat "ws://localhost:4000/ws?token=$(python scripts/issue_token.py alice)"
# =============================================================================

import os
import sys

from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

load_dotenv()

from app.auth import auth_gate  # noqa: E402


def main():
    """Mint and print a token for the given user id."""
    if len(sys.argv) < 2:
        print("Usage: python scripts/issue_token.py <user_id> [expires_minutes]")
        sys.exit(1)

    user_id = sys.argv[1]
    expires_minutes = None
    if len(sys.argv) > 2:
        try:
            expires_minutes = int(sys.argv[2])
        except ValueError:
            print(f"\nError: expires_minutes must be an integer, got {sys.argv[2]!r}")
            sys.exit(1)

    print(auth_gate.create_access_token(user_id, expires_minutes=expires_minutes))


if __name__ == "__main__":
    main()
