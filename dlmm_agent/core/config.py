import json
import os
from pathlib import Path
from typing import Any

from solders.keypair import Keypair

_CONFIG_ENV_KEYS = ("DLMM_AGENT_CONFIG_PATH", "DLMM_AGENT_CONFIG")
_DEFAULT_CONFIG_FILENAME = "config.json"

_DEFAULT_HERMES_URL = "https://hermes.pyth.network"
_DEFAULT_KRAKEN_WS_URL = "wss://ws.kraken.com/v2"
_DEFAULT_JUPITER_API_URL = "https://lite-api.jup.ag/ultra/v1"
_DEFAULT_TINYBIRD_URL = "http://localhost:7181"


def _find_project_root(start: Path) -> Path | None:
    cur = start.resolve()
    for parent in [cur, *cur.parents]:
        if (parent / "pyproject.toml").exists():
            return parent
    return None


def _project_root() -> Path | None:
    return _find_project_root(Path.cwd()) or _find_project_root(Path(__file__).parent)


def resolve_config_path(path: str | Path | None = None) -> Path:
    if path is not None:
        return Path(path).expanduser()

    env_path = next(
        (os.getenv(k, "").strip() for k in _CONFIG_ENV_KEYS if os.getenv(k)), ""
    )
    if env_path:
        p = Path(env_path).expanduser()
        if p.is_absolute():
            return p
        root = _project_root()
        return (root / p) if root else p

    root = _project_root()
    return (root / _DEFAULT_CONFIG_FILENAME) if root else Path(_DEFAULT_CONFIG_FILENAME)


def load_config_json(
    path: str | Path | None = None, *, require_exists: bool = False
) -> dict[str, Any]:
    cfg_path = resolve_config_path(path)
    if not cfg_path.exists():
        if require_exists:
            raise FileNotFoundError(f"Config file not found: {cfg_path}")
        return {}
    try:
        return json.loads(cfg_path.read_text())
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in config file {cfg_path}: {exc}") from exc


CONFIG: dict[str, Any] = {}


def set_config(config: dict[str, Any]) -> None:
    """Replace the global CONFIG dict in-place.

    This allows code that imported CONFIG at module import time to see updates.
    """
    CONFIG.clear()
    CONFIG.update(config)


def load_config(
    path: str | Path | None = None, *, require_exists: bool = False
) -> None:
    """Load config from disk into the global CONFIG dict."""
    set_config(load_config_json(path, require_exists=require_exists))


def _section(name: str) -> dict[str, Any]:
    value = CONFIG.get(name)
    return value if isinstance(value, dict) else {}


def _lookup(section: str, key: str, env_key: str, default: str | None = None) -> str | None:
    value = _section(section).get(key)
    if value:
        return str(value).strip()
    env_value = os.environ.get(env_key, "").strip()
    if env_value:
        return env_value
    return default


def _require(section: str, key: str, env_key: str) -> str:
    value = _lookup(section, key, env_key)
    if not value:
        raise ValueError(
            f"{section}.{key} not configured (set it in config.json or {env_key})"
        )
    return value


def get_rpc_urls() -> dict[str, str]:
    read_url = _require("solana", "read_rpc_url", "READ_RPC_URL")
    return {
        "read": read_url,
        "write": _lookup("solana", "write_rpc_url", "WRITE_RPC_URL") or read_url,
        "ws": _lookup("solana", "ws_rpc_url", "WS_RPC_URL")
        or read_url.replace("https://", "wss://").replace("http://", "ws://"),
    }


def parse_secret_key(raw: str) -> Keypair:
    """Accept either a JSON/CSV byte array (``1,2,3,...``) or a base58 string."""
    text = raw.strip()
    if text.startswith("[") and text.endswith("]"):
        text = text[1:-1]
    if "," in text:
        try:
            secret = bytes(int(v.strip()) for v in text.split(",") if v.strip())
        except ValueError as exc:
            raise ValueError("SECRET_KEY byte list contains non-integer values") from exc
        return Keypair.from_bytes(secret)
    return Keypair.from_base58_string(text)


def load_keypair() -> Keypair:
    return parse_secret_key(_require("solana", "secret_key", "SECRET_KEY"))


def get_hermes_url() -> str:
    return _lookup("feeds", "hermes_url", "HERMES_URL", _DEFAULT_HERMES_URL) or ""


def get_kraken_ws_url() -> str:
    return _lookup("feeds", "kraken_ws_url", "KRAKEN_WS_URL", _DEFAULT_KRAKEN_WS_URL) or ""


def get_jupiter_api_url() -> str:
    return (
        _lookup("system", "jupiter_api_url", "JUPITER_API_URL", _DEFAULT_JUPITER_API_URL)
        or ""
    )


def get_tinybird_settings() -> tuple[str, str | None]:
    url = _lookup("system", "tinybird_url", "TINYBIRD_URL", _DEFAULT_TINYBIRD_URL) or ""
    return url, _lookup("system", "tinybird_token", "TINYBIRD_TOKEN")


def get_slack_settings() -> tuple[str | None, str | None]:
    return (
        _lookup("system", "slack_token", "SLACK_TOKEN"),
        _lookup("system", "slack_channel", "SLACK_CHANNEL"),
    )


def get_pool_sdk_factory() -> str:
    return _require("system", "pool_sdk", "DLMM_POOL_SDK")


def get_pool_configs() -> list[dict[str, Any]]:
    pools = CONFIG.get("pools")
    if isinstance(pools, list):
        return [p for p in pools if isinstance(p, dict)]
    return []
