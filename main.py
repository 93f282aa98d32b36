#!/usr/bin/env python3
"""
CommentDesk main entry point for container deployment.

Platforms that run `python main.py` start the HTTP API on $PORT.
"""

import os
import sys


def main():
    """Start the CommentDesk API server."""
    # Get port from environment, handling unexpanded variables
    port_env = os.environ.get("PORT", "3001")

    if port_env == "$PORT":
        print("Warning: Got literal '$PORT', using default port 3001")
        port = 3001
    else:
        try:
            port = int(port_env)
        except (ValueError, TypeError):
            print(f"Warning: Invalid PORT value '{port_env}', using default port 3001")
            port = 3001

    print(f"Starting CommentDesk API on port {port}")

    from commentdesk.cli import main as cli_main

    sys.argv = ["main.py", "serve", "--port", str(port)]
    cli_main()


if __name__ == "__main__":
    main()
