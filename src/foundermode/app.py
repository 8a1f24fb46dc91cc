"""
Founder Mode server launcher.
Starts the simulation API and, optionally, opens the interactive docs.
"""
import os
import sys
import webbrowser
from pathlib import Path

from dotenv import load_dotenv

project_root = Path(__file__).parent.parent.parent
env_path = project_root / ".env"
if env_path.exists():
    load_dotenv(env_path)
    print(f"[founder] Loaded environment from: {env_path}")

import uvicorn


def main() -> None:
    host = os.getenv("FOUNDER_HOST", "127.0.0.1")
    try:
        port = int(os.getenv("FOUNDER_PORT", "8015"))
    except ValueError:
        port = 8015

    print("=" * 70)
    print("Founder Mode - startup simulation server")
    print("=" * 70)
    print(f"API:  http://{host}:{port}/api/v1/game")
    print(f"Docs: http://{host}:{port}/docs")
    print()

    if "--open" in sys.argv[1:]:
        try:
            webbrowser.open(f"http://{host}:{port}/docs")
        except webbrowser.Error as exc:
            print(f"[founder] Could not open browser: {exc}")

    uvicorn.run("foundermode.sim_manager.app:app", host=host, port=port, log_level="info")


if __name__ == "__main__":
    main()
