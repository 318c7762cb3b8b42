#!/usr/bin/env python3
"""
Startup script for the Voiceboard server.

Usage:
    voiceboard-server [--port PORT] [--host HOST] [--log-level LEVEL]

Environment variables:
    VB_HTTP_PORT: Server port (default: 8080)
    VB_HTTP_HOST: Server host (default: 127.0.0.1)
    VB_LOG_LEVEL: Logging level (default: INFO)
    VB_DATA_DIR: Whiteboard storage directory (default: ~/.voiceboard/boards)
    VB_SAVE_INTERVAL: Save interval in seconds (default: 30)
    VB_SESSION_TTL: Session idle timeout in seconds (default: 86400)
    VB_LAYOUT_TIMEOUT: Layout timeout in seconds (default: 10)
    VB_ELK_URL: elkjs layout service URL (default: in-process layout)
"""

import argparse
import logging
import os
import sys

logger = logging.getLogger(__name__)


def main():
    """Start the HTTP server."""
    parser = argparse.ArgumentParser(description="Voiceboard Server")
    parser.add_argument("--port", type=int, default=None, help="Server port (default: 8080)")
    parser.add_argument("--host", default=None, help="Server host (default: 127.0.0.1)")
    parser.add_argument("--log-level", default=None, help="Log level (default: INFO)")
    parser.add_argument("--data-dir", default=None, help="Whiteboard storage directory")
    parser.add_argument("--elk-url", default=None, help="elkjs layout service URL")

    args = parser.parse_args()

    # Set environment variables from args if provided
    if args.port:
        os.environ["VB_HTTP_PORT"] = str(args.port)
    if args.host:
        os.environ["VB_HTTP_HOST"] = args.host
    if args.log_level:
        os.environ["VB_LOG_LEVEL"] = args.log_level.upper()
    if args.data_dir:
        os.environ["VB_DATA_DIR"] = args.data_dir
    if args.elk_url is not None:
        os.environ["VB_ELK_URL"] = args.elk_url

    from .core.config import BoardConfig

    try:
        config = BoardConfig.from_env()
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(2)

    print(f"Starting Voiceboard server on {config.host}:{config.port}")
    print(f"Log level: {config.log_level}")
    print(f"Boards stored in: {config.data_dir}")
    print("Press Ctrl+C to stop")
    print("")

    try:
        import uvicorn
        from .server.app import app

        uvicorn.run(
            app,
            host=config.host,
            port=config.port,
            log_level=config.log_level.lower(),
        )
    except KeyboardInterrupt:
        print("\nServer stopped by user")
    except Exception as e:
        print(f"Error starting server: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
