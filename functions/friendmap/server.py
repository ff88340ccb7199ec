"""
Run the friend map backend under uvicorn.
"""

from __future__ import annotations

import argparse
import logging
import sys

import uvicorn
from sqlalchemy.engine import make_url

from friendmap.app import create_app
from friendmap.config import get_settings

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Friend map backend server")
    parser.add_argument(
        "--host",
        default=settings.host,
        help="Interface to bind (default from HOST)",
    )
    parser.add_argument(
        "-p",
        "--port",
        type=int,
        default=settings.port,
        help="Port to listen on (default from PORT)",
    )
    parser.add_argument(
        "--database-url",
        default=settings.database_url,
        help="SQLAlchemy database URL (default from DATABASE_URL)",
    )
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        help="Logging level (default from LOG_LEVEL)",
    )
    args = parser.parse_args(argv)
    settings = settings.model_copy(
        update={
            "host": args.host,
            "port": args.port,
            "database_url": args.database_url,
            "log_level": args.log_level,
        }
    )

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = create_app(settings)
    logger.info("Using database %s", make_url(settings.database_url).render_as_string(hide_password=True))
    logger.info("Friend map server running on port %d", args.port)
    logger.info("Frontend: http://localhost:%d", args.port)
    logger.info("Admin panel: http://localhost:%d/admin", args.port)
    uvicorn.run(app, host=args.host, port=args.port, log_level=settings.log_level.lower())
    logger.info("Server stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
