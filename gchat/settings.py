# gchat/settings.py

import argparse
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import commentjson

from gchat.errors import ConfigError
from gchat.llm_client import DEFAULT_MODEL, XAI_BASE_URL
from gchat.turn_params import DEFAULT_LEVEL, DEFAULT_TEMPERATURE, MAX_LEVEL

DEFAULT_CONFIG_PATH = "./gchat.json"
CONFIG_PATH_ENV = "GCHAT_CONFIG_PATH"


@dataclass
class Settings:
    chat_file: str = "./gchat.md"
    level: int = DEFAULT_LEVEL
    temperature: float = DEFAULT_TEMPERATURE
    model: str = DEFAULT_MODEL
    api_timeout: float = 600.0
    api_retries: int = 1
    base_url: str = XAI_BASE_URL
    api_key_env: str = "XAI_API_KEY"
    file_requests: bool = True
    escalation: bool = True
    max_file_rounds: int = 8
    sound: bool = True
    debounce_seconds: float = 0.5
    poll_interval: float = 0.25
    verbose: bool = False
    once: bool = False

    @property
    def max_level(self) -> int:
        return MAX_LEVEL


_FIELD_TYPES = {f.name: f.type for f in fields(Settings)}


def _coerce(name: str, value: Any) -> Any:
    expected = _FIELD_TYPES[name]
    if expected is bool:
        if isinstance(value, bool):
            return value
        raise ConfigError(f"Config key '{name}' must be true or false, got {value!r}")
    if expected is float and isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if expected is int and isinstance(value, int) and not isinstance(value, bool):
        if value < 0:
            raise ConfigError(f"Config key '{name}' must not be negative, got {value}")
        return value
    if expected is str and isinstance(value, str):
        return value
    raise ConfigError(f"Config key '{name}' must be {expected.__name__}, got {value!r}")


def load_persisted_config(path) -> Dict[str, Any]:
    """
    Load the JSON-with-comments config file. A missing file means "no overrides";
    a malformed file, unknown keys or wrongly typed values raise ConfigError.
    """
    cfg_path = Path(path)
    if not cfg_path.exists():
        return {}

    try:
        with cfg_path.open("r", encoding="utf-8") as f:
            data = commentjson.load(f)
    except Exception as e:
        raise ConfigError(f"Could not parse config file '{cfg_path}': {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file '{cfg_path}' must contain a JSON object")

    unknown = sorted(k for k in data if k not in _FIELD_TYPES)
    if unknown:
        raise ConfigError(f"Unknown key(s) {unknown} in config file '{cfg_path}'")

    return {k: _coerce(k, v) for k, v in data.items()}


def build_arg_parser() -> argparse.ArgumentParser:
    # every default is None so that "not given" falls through to the config file
    parser = argparse.ArgumentParser(
        prog="gchat",
        description="Chat with Grok by editing a transcript file.",
    )
    parser.add_argument("-f", "--chat-file", dest="chat_file", default=None, help="transcript file (default ./gchat.md)")
    parser.add_argument("-l", "--level", type=int, default=None, help=f"default token level 0-{MAX_LEVEL}; budget is 1024 * 2**level")
    parser.add_argument("--temperature", type=float, default=None, help="default sampling temperature")
    parser.add_argument("-m", "--model", default=None, help="model identifier")
    parser.add_argument("-T", "--api-timeout", dest="api_timeout", type=float, default=None, help="request timeout in seconds")
    parser.add_argument("--api-retries", dest="api_retries", type=int, default=None, help="attempts per request on 429/timeout")
    parser.add_argument("--base-url", dest="base_url", default=None, help="OpenAI-compatible API base URL")
    parser.add_argument("--no-file-requests", dest="file_requests", action="store_false", default=None, help="do not honour file requests from the model")
    parser.add_argument("--no-escalation", dest="escalation", action="store_false", default=None, help="do not retry truncated replies with a bigger budget")
    parser.add_argument("--max-file-rounds", dest="max_file_rounds", type=int, default=None, help="file-request rounds allowed per turn")
    parser.add_argument("--no-sound", dest="sound", action="store_false", default=None, help="disable audio feedback")
    parser.add_argument("--config", default=None, help=f"config file (default ${CONFIG_PATH_ENV} or {DEFAULT_CONFIG_PATH})")
    parser.add_argument("-v", "--verbose", action="store_true", default=None, help="debug logging")
    parser.add_argument("--once", action="store_true", default=None, help="process the file once and exit")
    return parser


def resolve_settings(argv: Optional[List[str]] = None, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Command line > persisted config > built-in default.
    Bad arguments or a bad config file exit through argparse (status 2).
    """
    environ = os.environ if environ is None else environ
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    config_path = args.config or environ.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH
    try:
        persisted = load_persisted_config(config_path)
    except ConfigError as e:
        parser.error(str(e))

    merged = asdict(Settings())
    merged.update(persisted)
    cli = {k: v for k, v in vars(args).items() if k in _FIELD_TYPES and v is not None}
    merged.update(cli)

    settings = Settings(**merged)
    for name in ("level", "max_file_rounds", "api_retries"):
        if getattr(settings, name) < 0:
            parser.error(f"--{name.replace('_', '-')} must not be negative")
    return settings
