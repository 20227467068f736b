#!/usr/bin/env python
"""Run the image gateway under uvicorn."""
from __future__ import annotations

import argparse

import uvicorn

from imagegem.config import get_settings


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Serve the Image Gem API")
    parser.add_argument("--host", default=settings.server_host)
    parser.add_argument("--port", type=int, default=settings.server_port)
    parser.add_argument(
        "--graceful-timeout",
        type=float,
        default=settings.graceful_timeout,
        help="seconds to wait for in-flight requests on shutdown, e.g. 30",
    )
    args = parser.parse_args()

    uvicorn.run(
        "imagegem.main:app",
        host=args.host,
        port=args.port,
        timeout_keep_alive=int(settings.idle_timeout),
        timeout_graceful_shutdown=int(args.graceful_timeout),
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
