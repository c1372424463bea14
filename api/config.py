"""Command line and environment configuration for the clickterm server."""

import argparse
import os
from dataclasses import dataclass

from dotenv import load_dotenv

DEFAULT_URL = "http://localhost:8123"
DEFAULT_ADDRESS = "127.0.0.1:3001"
ENV_PREFIX = "CLICKTERM_"


@dataclass(frozen=True)
class Settings:
    """Values handed to the server at startup; passed through to ClickHouse unchecked."""

    user: str
    password: str
    url: str = DEFAULT_URL
    host: str = "127.0.0.1"
    port: int = 3001
    timeout: float | None = None
    max_execution_time: int | None = None
    inject_limit: bool = True
    log_level: str = "INFO"

    @property
    def address(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{host}:{self.port}"


def _env(name: str, default=None):
    return os.getenv(ENV_PREFIX + name, default)


def _env_flag(name: str, *, default: bool) -> bool:
    raw_value = _env(name)
    if raw_value is None:
        return default
    return raw_value.lower() not in {"0", "false", "no", "off"}


def parse_address(address: str) -> tuple[str, int]:
    """Split ``host:port`` (``[::1]:3001`` for IPv6) into its parts."""
    host, sep, port = address.rpartition(":")
    if not sep or not host:
        raise ValueError(f"address must look like host:port, got {address!r}")
    try:
        port_number = int(port)
    except ValueError:
        raise ValueError(f"invalid port in address {address!r}") from None
    if not 0 <= port_number <= 65535:
        raise ValueError(f"port out of range in address {address!r}")
    return host.strip("[]"), port_number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clickterm",
        description="A web-based SQL client for ClickHouse",
    )
    parser.add_argument("--url", default=_env("URL", DEFAULT_URL), help="ClickHouse HTTP URL")
    parser.add_argument(
        "-u", "--user", default=_env("USER"), help="ClickHouse username, must be a read-only user"
    )
    parser.add_argument("-p", "--password", default=_env("PASSWORD"), help="ClickHouse password")
    parser.add_argument(
        "-a", "--address", default=_env("ADDRESS", DEFAULT_ADDRESS), help="address to bind the server"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=_env("TIMEOUT"),
        help="seconds to wait for ClickHouse to connect or send data",
    )
    parser.add_argument(
        "--max-execution-time",
        type=int,
        default=_env("MAX_EXECUTION_TIME"),
        help=(
            "server-side limit in seconds for each query; recommended in production, since "
            "a query keeps running after the browser disconnects until it ends or hits a limit"
        ),
    )
    parser.add_argument(
        "--no-inject-limit",
        dest="inject_limit",
        action="store_false",
        default=_env_flag("INJECT_LIMIT", default=True),
        help="send SQL exactly as typed instead of appending LIMIT 2000",
    )
    parser.add_argument("--log-level", default=_env("LOG_LEVEL", "INFO"))
    return parser


def load_settings(argv=None) -> Settings:
    """
    Resolve settings from ``argv``, then ``CLICKTERM_*`` variables, then a ``.env`` file.

    Exits through ``argparse`` (status 2) when credentials are missing or a
    value does not parse.
    """
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.user is None:
        parser.error("a ClickHouse user is required (-u/--user or CLICKTERM_USER)")
    if args.password is None:
        parser.error("a ClickHouse password is required (-p/--password or CLICKTERM_PASSWORD)")
    try:
        host, port = parse_address(args.address)
    except ValueError as e:
        parser.error(str(e))

    return Settings(
        user=args.user,
        password=args.password,
        url=args.url,
        host=host,
        port=port,
        timeout=args.timeout,
        max_execution_time=args.max_execution_time,
        inject_limit=args.inject_limit,
        log_level=args.log_level.upper(),
    )
