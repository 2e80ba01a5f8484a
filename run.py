"""Launch the streamcore backend (FastAPI) with uvicorn."""
import os
import subprocess
import sys
from pathlib import Path

from streamcore.config import get_settings


def main():
    root = Path(__file__).parent
    settings = get_settings()

    # DOCKER=1 binds every interface; local runs stay on loopback with reload.
    is_docker = os.environ.get("DOCKER", "0") == "1"
    host = "0.0.0.0" if is_docker else "127.0.0.1"
    port = os.environ.get("PORT", "") or str(settings.backend_port)

    print("=" * 60)
    print("  streamcore -- run.py starting")
    print(f"  Backend (FastAPI) -> http://{host}:{port}")
    print(f"  Default model     -> {settings.default_model}")
    print("=" * 60)

    cmd = [
        sys.executable, "-m", "uvicorn", "streamcore.main:app",
        "--host", host, "--port", port,
        "--log-level", settings.log_level.lower(),
    ]
    if not is_docker:
        cmd.append("--reload")

    backend = subprocess.Popen(cmd, cwd=str(root))
    try:
        backend.wait()
    except KeyboardInterrupt:
        print("\nShutting down...")
        backend.terminate()
        backend.wait()


if __name__ == "__main__":
    main()
