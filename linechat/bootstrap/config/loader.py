import argparse
import os
from functools import lru_cache
from pathlib import Path

DEFAULT_CONFIG_FILE = "linechat.yaml"


@lru_cache
def get_cli_args() -> argparse.Namespace:
    return build_parser().parse_args()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="linechat",
        description=(
            "Terminal client for line-based chat servers.\n\n"
            "Connects to a single server, shows the shared general conversation\n"
            "and one private conversation per peer, and marks conversations\n"
            "with unread messages."
        ),
        formatter_class=argparse.RawTextHelpFormatter
    )

    parser.add_argument(
        "-c", "--config",
        type=str,
        help="Path to a linechat configuration file"
    )

    parser.add_argument(
        "--host",
        type=str,
        help="Server host name or IP address (overrides the configuration)"
    )

    parser.add_argument(
        "--port",
        type=int,
        help="Server TCP port (overrides the configuration)"
    )

    parser.add_argument(
        "-n", "--name",
        type=str,
        help="Username announced to the server (overrides the configuration)"
    )

    parser.add_argument(
        "--avatar",
        type=str,
        help="Avatar reference announced to the server"
    )

    parser.add_argument(
        "-l", "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help=(
            "Logging verbosity of the client.\n"
            "Choose among: DEBUG, INFO, WARNING, ERROR, CRITICAL.\n\n"
            "DEBUG    → connection state transitions and conversation changes.\n"
            "INFO     → connects, disconnects and probe outcomes.\n"
            "WARNING  → discarded lines and lost connections (default).\n"
            "ERROR    → only errors.\n"
            "CRITICAL → only critical failures.\n\n"
            "Logs go to stderr and are interleaved with the chat output.\n"
            "Example:\n"
            "  --log-level INFO 2> linechat.log"
        ),
    )

    return parser


def resolve_configfile(raw: str | None) -> Path | None:
    """
    Resolve the configuration file to load.

    Priority: explicit path > LINECHATCONFIG > ./linechat.yaml. An explicit
    path must exist; the default file is optional.
    """
    raw = raw or os.getenv("LINECHATCONFIG")

    if raw is None:
        file = Path.cwd() / DEFAULT_CONFIG_FILE
        return file if file.is_file() else None

    file = Path(raw)
    if not file.is_file():
        raise SystemExit(
            f"[config] Configuration file not found: '{file}'.\n"
            "  - Use --config <file.yaml>\n"
            "  - Or set the LINECHATCONFIG environment variable\n"
            f"  - Or place a '{DEFAULT_CONFIG_FILE}' file in the current working directory."
        )

    return file


@lru_cache
def get_configfile() -> Path | None:
    return resolve_configfile(get_cli_args().config)
