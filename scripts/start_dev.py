#!/usr/bin/env python3
"""
Development startup script.

Runs pre-flight checks and starts the mock backend with auto-reload. Point
the storefront core at it with STOREFRONT_API_BASE_URL.
"""

import os
import sys
import subprocess
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent


def check_dependencies():
    """Check if required dependencies are installed."""
    try:
        import fastapi
        import uvicorn
        import httpx
        import jwt
        import cryptography
        print("✓ All core dependencies installed")
        return True
    except ImportError as e:
        print(f"✗ Missing dependency: {e.name}")
        print("\nRun: pip install -e .")
        return False


def check_keys():
    """Check if the session signing key exists."""
    key_path = PROJECT_ROOT / "config" / "keys" / "session_signing.pem"

    if key_path.exists():
        print("✓ Session signing key found")
        return True
    print("! Session signing key not found - tokens will not survive a restart")
    return False


def start_backend(port: int):
    """Start the mock backend in development mode."""
    print(f"\n🏪 Starting mock backend on http://localhost:{port} ...")
    print(f"📍 API docs: http://localhost:{port}/docs")
    print("\nPress Ctrl+C to stop")
    print("=" * 60)

    process = subprocess.Popen(
        [
            sys.executable, "-m", "uvicorn",
            "mock_backend.main:app",
            "--reload",
            "--host", "0.0.0.0",
            "--port", str(port),
        ],
        cwd=PROJECT_ROOT,
    )
    try:
        process.wait()
    except KeyboardInterrupt:
        print("\n\nShutting down...")
        process.terminate()
        process.wait()
        print("Backend stopped.")


def main():
    print("=" * 60)
    print("Storefront Core - Development Server")
    print("=" * 60)

    print("\nRunning pre-flight checks...")

    if not check_dependencies():
        sys.exit(1)

    if not check_keys():
        response = input("\nGenerate a signing key now? [Y/n]: ")
        if response.lower() != "n":
            subprocess.run([sys.executable, str(PROJECT_ROOT / "scripts" / "generate_keys.py")])

    print("\n✓ All checks passed!")

    start_backend(int(os.getenv("MOCK_BACKEND_PORT", "3002")))


if __name__ == "__main__":
    main()
