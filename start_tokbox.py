#!/usr/bin/env python3
"""
tok.box Analysis Backend Startup Script

Checks configuration, then starts the FastAPI server with uvicorn.
"""

import os
import sys
from pathlib import Path

import uvicorn

REQUIRED_KEYS = ("ANTHROPIC_API_KEY", "OPENAI_API_KEY")


def check_dependencies():
    """Check if the core dependencies are installed"""
    try:
        import fastapi  # noqa: F401
        import anthropic  # noqa: F401
        import openai  # noqa: F401
        import boto3  # noqa: F401
        print("✅ All dependencies found")
        return True
    except ImportError as e:
        print(f"❌ Missing dependency: {e}")
        print("💡 Run: pip install -e .")
        return False


def check_environment():
    """Warn about provider keys missing from the environment"""
    from dotenv import load_dotenv

    load_dotenv(".env", override=False)
    missing = [key for key in REQUIRED_KEYS if not os.environ.get(key)]
    for key in missing:
        print(f"⚠️ {key} is not set; analyses will fail until it is")
    if not os.environ.get("EMBEDDING_SERVICE_URL"):
        print("⚠️ EMBEDDING_SERVICE_URL not set, using http://localhost:8000")
    print("🔧 Environment checked")


def create_log_directory():
    """Create the directory for LOG_FILE if one is configured"""
    log_file = os.environ.get("LOG_FILE")
    if log_file and os.path.dirname(log_file):
        Path(os.path.dirname(log_file)).mkdir(parents=True, exist_ok=True)
        print("📁 Log directory created")


def print_startup_info(port):
    """Print startup information"""
    print("=" * 60)
    print("🚀 TOK.BOX ANALYSIS BACKEND")
    print("=" * 60)
    print(f"📍 FastAPI Server: http://localhost:{port}")
    print(f"📍 API Docs: http://localhost:{port}/docs")
    print(f"📍 Health Check: http://localhost:{port}/health")
    print("=" * 60)
    print("💡 Endpoints:")
    print("   • POST /api/get-upload-url")
    print("   • POST /api/analyze")
    print("   • GET  /api/check-usage")
    print("   • GET  /api/history")
    print("=" * 60)


def main():
    """Main startup function"""
    print("🔄 Starting tok.box Analysis Backend...")

    if not check_dependencies():
        sys.exit(1)

    check_environment()
    create_log_directory()

    port = int(os.environ.get("APP_PORT", "8001"))
    print_startup_info(port)

    if not Path("tokbox/main.py").exists():
        print("❌ Error: tokbox/main.py not found")
        print("💡 Make sure you're running this from the repository root")
        sys.exit(1)

    try:
        print("🚀 Starting FastAPI server...")
        uvicorn.run(
            "tokbox.main:app",
            host=os.environ.get("APP_HOST", "0.0.0.0"),
            port=port,
            reload=os.environ.get("DEBUG", "false").lower() == "true",
            log_level=os.environ.get("LOG_LEVEL", "info").lower(),
            access_log=True
        )
    except KeyboardInterrupt:
        print("\n🛑 Shutting down tok.box backend...")


if __name__ == "__main__":
    main()
