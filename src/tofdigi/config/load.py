from __future__ import annotations
from .schemas import Config, DigiCfg
from ..errors import ConfigurationError
from pathlib import Path
from pydantic import ValidationError
import json

try:
    import tomllib  # py311+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # py<=310

def load_config(path: str | Path) -> Config:
    p = Path(path)
    try:
        data = tomllib.loads(p.read_text())
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"{p}: {e}") from e
    try:
        return Config(**data)
    except ValidationError as e:
        raise ConfigurationError(f"{p}: {e}") from e

def build_digi_cfg(**overrides) -> DigiCfg:
    """DigiCfg from keyword overrides; invalid settings raise ConfigurationError."""
    try:
        return DigiCfg(**overrides)
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e

def snapshot_config_toml(path: str | Path) -> str:
    """Return the raw TOML text for embedding in HDF5 metadata."""
    return Path(path).read_text()

def json_dumps(obj) -> str:
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False)
