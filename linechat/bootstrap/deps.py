import argparse
import json
from functools import lru_cache
from typing import Any

from pydantic import ValidationError

from linechat.bootstrap.config.loader import get_cli_args
from linechat.bootstrap.config.settings import LineChatConfig


def cli_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Map command line options onto the nested configuration sections."""
    overrides: dict[str, dict[str, Any]] = {}
    mapping = {
        "host": ("server", "host"),
        "port": ("server", "port"),
        "name": ("identity", "username"),
        "avatar": ("identity", "avatar"),
    }
    for option, (section, key) in mapping.items():
        value = getattr(args, option, None)
        if value is not None:
            overrides.setdefault(section, {})[key] = value
    return overrides


def load_config(overrides: dict[str, Any]) -> LineChatConfig:
    try:
        return LineChatConfig(**overrides)
    except FileNotFoundError as ex:
        raise SystemExit(f"Provide a correct configuration file path: {ex}")
    except ValidationError as ex:
        msg = ["Configuration validation failed:"]
        errs = json.loads(ex.json())
        for err in errs:
            msg.append(f"  {'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}")
        if any(err["loc"] and err["loc"][0] == "identity" for err in errs):
            msg.append("  (set identity.username in the configuration or pass --name)")
        raise SystemExit("\n".join(msg))


@lru_cache
def get_config() -> LineChatConfig:
    return load_config(cli_overrides(get_cli_args()))
