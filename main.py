"""Worldbuilding Studio dev launcher. Starts the API server in watch mode."""

import argparse
import os
import signal
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
BACKEND_PORT = os.getenv("BACKEND_PORT", "3002")


def main():
    parser = argparse.ArgumentParser(description="Worldbuilding Studio dev launcher")
    parser.add_argument("--service", choices=["ollama", "together"], default=None,
                        help="Preferred AI service (default: by APP_ENV)")
    parser.add_argument("--production", action="store_true",
                        help="Run with APP_ENV=production (hosted API, no fallback)")
    parser.add_argument("--allow-fallback", action="store_true",
                        help="Allow provider fallback even in production")
    parser.add_argument("--mcp", action="store_true",
                        help="Also start the MCP memory server on stdio")
    args = parser.parse_args()

    # Build env for subprocesses so the backend builds its settings from it
    env = os.environ.copy()
    if args.service:
        env["PREFERRED_AI_SERVICE"] = args.service
    if args.production:
        env["APP_ENV"] = "production"
    if args.allow_fallback:
        env["ALLOW_FALLBACK"] = "true"

    procs: list[subprocess.Popen] = []

    def shutdown(*_):
        print("\nShutting down...")
        for p in procs:
            p.terminate()
        for p in procs:
            p.wait()
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    print(f"Starting backend on http://localhost:{BACKEND_PORT} ...")
    procs.append(subprocess.Popen(
        ["uv", "run", "uvicorn", "backend.app:app", "--reload", "--host", HOST, "--port", BACKEND_PORT],
        cwd=ROOT, env=env,
    ))

    if args.mcp:
        print("Starting MCP memory server ...")
        procs.append(subprocess.Popen(
            ["uv", "run", "python", "-m", "backend.mcp_server"],
            cwd=ROOT, env=env,
        ))

    for p in procs:
        p.wait()


if __name__ == "__main__":
    main()
