"""Bloxfolio dev launcher. Starts the API server in watch mode."""

import argparse
import logging
import os
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
BACKEND_PORT = os.getenv("BACKEND_PORT", "13013")


def main():
    parser = argparse.ArgumentParser(description="Bloxfolio dev launcher")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Data storage directory (default: ./data)")
    parser.add_argument("--port", default=BACKEND_PORT,
                        help=f"Port to listen on (default: {BACKEND_PORT})")
    parser.add_argument("--log-level", default=os.getenv("LOG_LEVEL", "INFO"),
                        help="Logging level (default: INFO or $LOG_LEVEL)")
    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    log = logging.getLogger("bloxfolio")

    # Build env for the server process so it picks up the same data dir
    env = os.environ.copy()
    env["LOG_LEVEL"] = args.log_level.upper()
    if args.data_dir:
        env["DATA_DIR"] = str(args.data_dir.resolve())

    if not env.get("OPENROUTER_API_KEY"):
        log.warning("OPENROUTER_API_KEY is not set; generation will be refused")

    log.info("Starting backend on http://localhost:%s ...", args.port)
    proc = subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "backend.app:app", "--reload",
         "--host", HOST, "--port", str(args.port),
         "--log-level", args.log_level.lower()],
        cwd=ROOT, env=env,
    )
    try:
        proc.wait()
    except KeyboardInterrupt:
        print("\nShutting down...")
        proc.terminate()
        proc.wait()


if __name__ == "__main__":
    main()
