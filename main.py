"""
main.py — Server launcher and entry point.

Run this file to start the search API:

    python main.py

Interactive API docs are served at http://127.0.0.1:8000/docs

This file does NOT contain application logic. See app.py for the FastAPI
application, service wiring, and startup sequence.

Direct uvicorn usage:
    uvicorn app:app --reload
"""

from __future__ import annotations

import os

import uvicorn


HOST = os.getenv("HOST", "127.0.0.1")
PORT = int(os.getenv("PORT", "8000"))


def main() -> None:
    """Start the roomfinder search API."""
    print("=" * 60)
    print("  roomfinder — Space Search API")
    print("=" * 60)
    print(f"  Server  : http://{HOST}:{PORT}")
    print(f"  Search  : http://{HOST}:{PORT}/search?q=room+for+6+people")
    print(f"  API docs: http://{HOST}:{PORT}/docs")
    print("=" * 60)
    print("  Press CTRL+C to stop\n")

    uvicorn.run(
        "app:app",
        host=HOST,
        port=PORT,
        reload=True,
        log_level="info",
    )


if __name__ == "__main__":
    main()
