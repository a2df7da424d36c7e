#!/usr/bin/env python3
"""
Simple Bank Entry Point

Starts the FastAPI server with settings from SIMPLE_BANK_* environment
variables (or a .env file).
"""

import sys

from simple_bank.__main__ import run_server


if __name__ == "__main__":
    print("Starting Simple Bank API...")
    try:
        run_server()
    except KeyboardInterrupt:
        print("\nShutting down Simple Bank API...")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)
