#!/usr/bin/env python3
"""
e2e_runner.py

One-file end-to-end smoke run against a real gateway process:
  - starts the gateway (uvicorn summary_gateway.main:app) in background
  - waits for the gateway to answer on /
  - POSTs the same text twice to /api/summarize
  - checks the first answer was computed and the second came from cache

Usage (from repo root, with SUMMARIZER_API_KEY and a cache backend configured):
  python scripts/e2e_runner.py --port 8000
  python scripts/e2e_runner.py --no-start --base http://127.0.0.1:8787

Notes:
  - The cache write happens after the first response is sent, so the runner
    waits --settle seconds before the second request.
  - Exit code is 0 only when the second response has cached=true.
"""

import os
import sys
import subprocess
import time
import json
from pathlib import Path
from urllib.request import urlopen, Request
from urllib.error import URLError, HTTPError
import argparse

REPO_ROOT = Path(__file__).resolve().parents[1]
LOGS_DIR = REPO_ROOT / "logs"

PY = sys.executable  # ensures the same Python interpreter is used

SAMPLE_TEXT = (
    "Caching summaries by content hash means a page that is summarized once\r\n"
    "never pays for the model call again, as long as its text does not change.  "
)

def timestamp():
    return int(time.time())

def start_backend(log_path=None, port=8000):
    """Start uvicorn summary_gateway.main:app in background; returns Popen object."""
    print("=== STARTING GATEWAY ===")
    env = os.environ.copy()
    env["PYTHONPATH"] = str(REPO_ROOT)
    cmd = [PY, "-m", "uvicorn", "summary_gateway.main:app", "--port", str(port)]
    stdout = open(log_path, "ab") if log_path else subprocess.DEVNULL
    proc = subprocess.Popen(cmd, cwd=str(REPO_ROOT), env=env, stdout=stdout, stderr=subprocess.STDOUT)
    print(f"Started uvicorn (pid={proc.pid}), logs -> {log_path}")
    return proc

def wait_for_health(url, timeout=60):
    """Wait up to `timeout` seconds for the gateway root to respond."""
    print("Waiting for gateway health endpoint...", end="", flush=True)
    start = time.time()
    while True:
        try:
            with urlopen(url, timeout=2) as r:
                body = r.read().decode("utf-8")
                print("\nGateway healthy:", body)
                return json.loads(body)
        except Exception:
            print(".", end="", flush=True)
            time.sleep(1)
        if time.time() - start > timeout:
            print("\nTimed out waiting for gateway health.")
            return None

def post_summarize(base, text, page_path):
    """POST one summarize request; returns (status, parsed JSON or None)."""
    payload = json.dumps({"text": text, "pagePath": page_path}).encode("utf-8")
    req = Request(base.rstrip("/") + "/api/summarize", data=payload, method="POST",
                  headers={"Content-Type": "application/json"})
    try:
        with urlopen(req, timeout=120) as resp:
            return resp.status, json.loads(resp.read().decode("utf-8"))
    except HTTPError as e:
        print("HTTP Error:", e.code, e.read().decode("utf-8", "replace")[:200])
        return e.code, None
    except URLError as e:
        print("URL Error:", e.reason)
    except Exception as e:
        print("Summarize request failed:", e)
    return None, None

def main():
    p = argparse.ArgumentParser(description="End-to-end runner: start gateway -> summarize twice -> expect cache hit")
    p.add_argument("--port", type=int, default=8000, help="Gateway port (default 8000)")
    p.add_argument("--base", default=None, help="Use an already running gateway at this base URL")
    p.add_argument("--no-start", action="store_true", help="Do not start uvicorn (requires --base)")
    p.add_argument("--page-path", default=f"/e2e/{timestamp()}", help="pagePath sent with the request")
    p.add_argument("--settle", type=float, default=2.0, help="Seconds to wait for the cache write")
    args = p.parse_args()

    base = args.base or f"http://127.0.0.1:{args.port}"
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    backend_log = LOGS_DIR / f"gateway_uvicorn_{timestamp()}.log"

    proc = None
    if not args.no_start:
        proc = start_backend(log_path=str(backend_log), port=args.port)
    try:
        health = wait_for_health(base.rstrip("/") + "/", timeout=60)
        if health is None:
            print("[ERROR] Gateway did not become healthy. Check log:", backend_log)
            return 2

        print("=== FIRST CALL ===")
        status1, first = post_summarize(base, SAMPLE_TEXT, args.page_path)
        print("status:", status1, "response:", first)
        if status1 != 200 or first is None:
            return 1

        time.sleep(args.settle)

        print("=== SECOND CALL ===")
        status2, second = post_summarize(base, SAMPLE_TEXT, args.page_path)
        print("status:", status2, "response:", second)
        if status2 != 200 or second is None:
            return 1

        ok = second.get("cached") is True and second.get("text") == first.get("text").strip()
        print("\n=== SUMMARY ===")
        print("first cached:", first.get("cached"), "second cached:", second.get("cached"))
        print("[OK] served from cache" if ok else "[FAIL] second call was not a cache hit")
        return 0 if ok else 1
    finally:
        if proc:
            proc.terminate()
            proc.wait(timeout=10)
            print("Gateway stopped. Log:", backend_log)

if __name__ == "__main__":
    sys.exit(main())
