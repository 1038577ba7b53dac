#!/usr/bin/env python3
"""
Temple Donation Tracker - Production Startup Script
Run this script to start the application in production mode
"""

import uvicorn
import logging
import os
import sys
from pathlib import Path


def main():
    """Start the Temple Donation Tracker API."""

    backend_dir = Path(__file__).parent
    os.chdir(backend_dir)

    port = int(os.getenv("PORT", 8000))
    host = os.getenv("HOST", "0.0.0.0")
    log_level = os.getenv("LOG_LEVEL", "info").lower()

    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    print("🛕 Starting Temple Donation Tracker...")
    print(f"📍 Host: {host}")
    print(f"🔌 Port: {port}")
    print(f"📁 Working directory: {backend_dir}")

    env_file = backend_dir / ".env"
    if not env_file.exists():
        print("⚠️  Warning: .env file not found. Using default configuration.")
        print("   Consider creating a .env file with SECRET_KEY and ADMIN_DEFAULT_PASSWORD set.")

    try:
        uvicorn.run(
            "main:app",
            host=host,
            port=port,
            reload=False,
            access_log=True,
            log_level=log_level,
            workers=1,
            server_header=False,
            date_header=False,
            timeout_keep_alive=30,
        )
    except KeyboardInterrupt:
        print("\n👋 Shutting down gracefully...")
    except Exception as e:
        print(f"❌ Error starting server: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
