#!/usr/bin/env python3
"""
AdScope API Startup Script

Starts the FastAPI server for local development after checking that the
variables the app reads at import time are present.
"""

import os
import sys

import uvicorn

from app.utils.env import env_int, load_env_file

REQUIRED = ("DATABASE_URL", "JWT_SECRET", "TOKEN_ENCRYPTION_KEY")
SHARED_GOOGLE_ADS = ("GOOGLE_DEVELOPER_TOKEN", "GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET", "GOOGLE_REFRESH_TOKEN")


def main():
    load_env_file()

    missing = [name for name in REQUIRED if not os.getenv(name)]
    if missing:
        print(f"Missing required variables: {', '.join(missing)}")
        print("   Export them or add them to backend/.env, e.g.")
        print("   DATABASE_URL=sqlite:///./adscope.db")
        print("   TOKEN_ENCRYPTION_KEY=<output of Fernet.generate_key()>")
        sys.exit(1)

    if not all(os.getenv(name) for name in SHARED_GOOGLE_ADS):
        print("Shared Google Ads credentials are incomplete: users must bring their own.")
    if not os.getenv("OPENAI_API_KEY"):
        print("OPENAI_API_KEY not set: AI insights will use rule-based fallbacks.")

    port = env_int("API_PORT", 8000)
    print(f"Starting AdScope API on port {port} (docs: http://localhost:{port}/docs)")
    uvicorn.run(
        "app.main:app",
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=port,
        reload=True,
        reload_dirs=["app"],
        log_level="info",
    )


if __name__ == "__main__":
    main()
