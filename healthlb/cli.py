import argparse
import sys

import uvicorn
from pydantic import ValidationError

from .logging_config import get_logger, setup_logging
from .main import create_app
from .settings import Settings

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="healthlb",
        description="Round-robin HTTP load balancer that skips unhealthy backends",
    )
    parser.add_argument(
        "-b", "--backend",
        dest="backends",
        action="extend",
        nargs="+",
        metavar="URL",
        help="backend base address, e.g. http://10.0.0.5:8000 (repeatable)",
    )
    parser.add_argument("-p", "--port", type=int, help="listening port")
    parser.add_argument("--host", help="listening address")
    parser.add_argument("--health-interval", type=float, help="seconds between health passes")
    parser.add_argument("--probe-timeout", type=float, help="health probe timeout in seconds")
    parser.add_argument("--request-timeout", type=float, help="proxied request timeout in seconds")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--log-format", choices=["console", "json"])
    return parser


def load_settings(argv: list[str] | None = None) -> Settings:
    """Parse the command line on top of LB_* environment settings."""
    parser = build_parser()
    args = parser.parse_args(argv)
    overrides = {k: v for k, v in vars(args).items() if v is not None}
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        parser.error(f"invalid configuration:\n{exc}")


def main(argv: list[str] | None = None) -> None:
    settings = load_settings(argv)
    setup_logging(settings.log_level, settings.log_format)

    app = create_app(settings)
    logger.info("starting_load_balancer", host=settings.host, port=settings.port)
    for address in settings.backends:
        logger.info("serving_backend", address=address)

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_config=None,
        # backend server and date headers are passed through as received
        server_header=False,
        date_header=False,
    )


if __name__ == "__main__":
    sys.exit(main())
