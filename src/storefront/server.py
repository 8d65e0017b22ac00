"""HTTP server runner for the storefront API.

Usage:
    storefront                          # Serve on 0.0.0.0:8000
    storefront --port 9000 --reload     # Local development
    storefront --store http             # Talk to the remote entity store
"""

import argparse
import os

import uvicorn


def main():
    parser = argparse.ArgumentParser(description="Storefront API server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true", help="Reload on source changes")
    parser.add_argument(
        "--store",
        choices=["memory", "http"],
        help="Entity store backend (default: STOREFRONT_STORE or memory)",
    )
    args = parser.parse_args()

    if args.store:
        os.environ["STOREFRONT_STORE"] = args.store

    uvicorn.run("storefront.app:create_app", factory=True, host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
