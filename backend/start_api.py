#!/usr/bin/env python3
"""
adpulse API Startup Script

Starts the FastAPI server with auto-reload for local development. The
in-process sync schedulers start with the app unless
SYNC_SCHEDULER_ENABLED=false (use that when the arq worker runs the syncs).
"""

import sys
from pathlib import Path

import uvicorn


def main():
    """Start the adpulse API server."""
    print("Starting adpulse API server...")
    print("   Swagger UI:  http://localhost:8000/docs")
    print("   ReDoc:       http://localhost:8000/redoc")
    print("")

    if not Path(".env").exists():
        print("WARNING: No .env file found!")
        print("   Run `python generate_keys.py` to create one from .env.template")
        print("")

    try:
        uvicorn.run(
            "adpulse.main:app",
            host="0.0.0.0",
            port=8000,
            reload=True,
            reload_dirs=["adpulse"],
            log_level="info",
        )
    except KeyboardInterrupt:
        print("\nShutting down adpulse API server...")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
