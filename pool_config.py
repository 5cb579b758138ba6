# pool_config.py
"""
Pool configuration.

Sources, later ones winning:
    1. Defaults (PoolConfig field defaults)
    2. YAML file: an explicit path, else ./ghost_pool.yaml or
       ./config/ghost_pool.yaml when present
    3. Environment variables (GHOST_POOL_*)

Example ghost_pool.yaml:

    tree_depth: 20
    root_history_size: 100
    redeem_key_path: keys/redeem_verification_key.json
    partial_redeem_key_path: keys/partial_redeem_verification_key.json
    log_level: INFO
"""

import logging
import os
import sys
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from groth16_verifier import ProofVerifier, VerificationKey, load_verification_key
from merkle_tree import DEFAULT_ROOT_HISTORY_SIZE, DEFAULT_TREE_DEPTH, MAX_TREE_DEPTH
from pool_errors import ConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "GHOST_POOL_"

DEFAULT_CONFIG_PATHS = [
    Path("ghost_pool.yaml"),
    Path("config/ghost_pool.yaml"),
]

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class PoolConfig:
    tree_depth: int = DEFAULT_TREE_DEPTH
    root_history_size: int = DEFAULT_ROOT_HISTORY_SIZE
    redeem_key_path: Optional[str] = None
    partial_redeem_key_path: Optional[str] = None
    log_level: str = "INFO"

    def validate(self) -> List[str]:
        """Return a list of problems; empty when the configuration is usable."""
        errors = []
        if not 1 <= self.tree_depth <= MAX_TREE_DEPTH:
            errors.append(f"tree_depth must be in [1, {MAX_TREE_DEPTH}], got {self.tree_depth}")
        if self.root_history_size < 1:
            errors.append(f"root_history_size must be at least 1, got {self.root_history_size}")
        if str(self.log_level).upper() not in _LOG_LEVELS:
            errors.append(f"log_level must be one of {', '.join(_LOG_LEVELS)}, got {self.log_level}")
        for name in ("redeem_key_path", "partial_redeem_key_path"):
            path = getattr(self, name)
            if path is not None and not Path(path).is_file():
                errors.append(f"{name} does not exist: {path}")
        return errors

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), default_flow_style=False)

    def build_verifier(self, default_redeem_key: Optional[VerificationKey] = None) -> ProofVerifier:
        """
        ProofVerifier for the configured keys.

        Without a redeem_key_path, `default_redeem_key` is used (typically
        verification_keys.REDEEM_VERIFICATION_KEY).
        """
        if self.redeem_key_path is not None:
            redeem_key = load_verification_key(self.redeem_key_path)
        elif default_redeem_key is not None:
            redeem_key = default_redeem_key
        else:
            raise ConfigError("No redeem verification key configured")

        partial_key = None
        if self.partial_redeem_key_path is not None:
            partial_key = load_verification_key(self.partial_redeem_key_path)
        return ProofVerifier(redeem_key, partial_key)


def _coerce(name: str, value: Any) -> Any:
    field_types = {f.name: f.type for f in fields(PoolConfig)}
    if field_types[name] is int:
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ConfigError(f"{name} must be an integer, got {value!r}")
    if value is None or value == "":
        return None if field_types[name] is not str else value
    return str(value)


def _apply(config: PoolConfig, values: Mapping[str, Any], source: str) -> None:
    known = {f.name for f in fields(PoolConfig)}
    for key, value in values.items():
        if key not in known:
            raise ConfigError(f"Unknown configuration key '{key}' in {source}")
        setattr(config, key, _coerce(key, value))


def load_config(
    path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> PoolConfig:
    """
    Build a PoolConfig from defaults, a YAML file and the environment.

    Raises:
        ConfigError: missing explicit file, malformed YAML, unknown key,
                     bad value
    """
    config = PoolConfig()
    environ = os.environ if environ is None else environ

    if path is not None:
        file_path: Optional[Path] = Path(path)
        if not file_path.exists():
            raise ConfigError(f"Configuration file not found: {file_path}")
    else:
        file_path = next((p for p in DEFAULT_CONFIG_PATHS if p.exists()), None)

    if file_path is not None:
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Malformed YAML in {file_path}: {exc}")
        if data is not None and not isinstance(data, dict):
            raise ConfigError(f"{file_path} must contain a mapping")
        _apply(config, data or {}, str(file_path))
        logger.debug("Loaded configuration from %s", file_path)

    known = {f.name for f in fields(PoolConfig)}
    env_values = {}
    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        name = key[len(ENV_PREFIX):].lower()
        if name in known:
            env_values[name] = value
        else:
            logger.warning("Ignoring unknown environment variable %s", key)
    _apply(config, env_values, "environment")

    errors = config.validate()
    if errors:
        raise ConfigError("; ".join(errors))
    return config


def configure_logging(level: str = "INFO") -> None:
    """Root logger setup for command-line use."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stderr)],
    )
