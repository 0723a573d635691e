#!/usr/bin/env python3
"""ccview - Claude Code Conversation Browser"""
import logging
import sys
import threading
import webbrowser

import uvicorn

from ccview.config import Settings


def open_browser(port):
    """Open browser after a short delay."""
    import time
    time.sleep(1.5)
    webbrowser.open(f"http://localhost:{port}")


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    settings = Settings.from_env()

    # Open browser in background
    if "--no-browser" not in sys.argv:
        threading.Thread(target=open_browser, args=(settings.port,), daemon=True).start()

    print(f"\n  ccview - Claude Code Conversation Browser")
    print(f"  Running at http://localhost:{settings.port}")
    print(f"  Scanning projects from: {settings.get_projects_dir()}\n")

    uvicorn.run(
        "ccview.server:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="info",
    )


if __name__ == "__main__":
    main()
