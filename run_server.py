"""
Launch the Synapse Discovery API.

Usage:
    python run_server.py [--host HOST] [--port PORT] [--no-reload]

Provider and models come from the environment (see discovery.config).
"""
import argparse
import os

import uvicorn


def main():
    parser = argparse.ArgumentParser(description="Synapse Discovery API server")
    parser.add_argument("--host", default=os.environ.get("SYNAPSE_HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.environ.get("SYNAPSE_PORT", "8000")))
    parser.add_argument("--no-reload", action="store_true", help="Disable auto-reload")
    args = parser.parse_args()

    print("Starting Synapse Discovery API Server...")
    print(f"Docs available at: http://localhost:{args.port}/docs")

    uvicorn.run(
        "discovery.api.server:app",
        host=args.host,
        port=args.port,
        reload=not args.no_reload
    )


if __name__ == "__main__":
    main()
