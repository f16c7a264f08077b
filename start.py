"""Server startup - runs the reelsmith API under uvicorn."""
import os
import sys
from pathlib import Path

# Flat packages under src/ are imported without a prefix
sys.path.insert(0, str(Path(__file__).parent / "src"))

import uvicorn

port = int(os.environ.get("PORT", "8000"))
host = os.environ.get("HOST", "0.0.0.0")

print(f"[start.py] Starting on {host}:{port}", flush=True)
uvicorn.run("api.server:create_app", factory=True, host=host, port=port, log_level="info")
