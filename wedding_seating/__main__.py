"""Uruchomienie API: python -m wedding_seating albo skrypt wedding-seating."""

import argparse
from typing import List, Optional

import uvicorn

from wedding_seating.settings import get_settings


def main(argv: Optional[List[str]] = None) -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Run the wedding seating API server")
    parser.add_argument("--host", type=str, default=settings.host)
    parser.add_argument("--port", type=int, default=settings.port)
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload for development")
    args = parser.parse_args(argv)

    uvicorn.run(
        "wedding_seating.api:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
