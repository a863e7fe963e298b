#!/usr/bin/env python3
"""
Run the candidate shortlisting API.

Usage:
    python server.py              # start on port 8080
    python server.py --port 3001  # custom port
"""

import argparse

import uvicorn
from dotenv import load_dotenv

load_dotenv()


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--port", type=int, default=8080)
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--reload", action="store_true")
    args = parser.parse_args()

    # The recruitment backend itself defaults to :8000
    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
