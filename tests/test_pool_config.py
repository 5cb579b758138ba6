"""Configuration loading tests."""

import json

import pytest

from groth16_verifier import ProofVerifier
from pool_config import PoolConfig, load_config
from pool_errors import ConfigError
from verification_keys import REDEEM_VERIFICATION_KEY, REDEEM_VERIFICATION_KEY_JSON


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    """No stray ghost_pool.yaml from the working directory."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_defaults():
    config = load_config(environ={})
    assert config == PoolConfig()
    assert config.tree_depth == 20
    assert config.root_history_size == 100


def test_yaml_file(tmp_path):
    path = tmp_path / "pool.yaml"
    path.write_text("tree_depth: 8\nroot_history_size: 16\nlog_level: debug\n")
    config = load_config(path, environ={})
    assert (config.tree_depth, config.root_history_size, config.log_level) == (8, 16, "debug")


def test_default_file_location(tmp_path):
    (tmp_path / "ghost_pool.yaml").write_text("tree_depth: 6\n")
    assert load_config(environ={}).tree_depth == 6


def test_environment_overrides_file(tmp_path):
    path = tmp_path / "pool.yaml"
    path.write_text("tree_depth: 8\n")
    config = load_config(path, environ={"GHOST_POOL_TREE_DEPTH": "12", "GHOST_POOL_UNRELATED": "x"})
    assert config.tree_depth == 12


def test_missing_explicit_file(tmp_path):
    with pytest.raises(ConfigError):
        load_config(tmp_path / "nope.yaml", environ={})


def test_malformed_yaml(tmp_path):
    path = tmp_path / "pool.yaml"
    path.write_text("tree_depth: [unclosed\n")
    with pytest.raises(ConfigError):
        load_config(path, environ={})


def test_unknown_key(tmp_path):
    path = tmp_path / "pool.yaml"
    path.write_text("tree_height: 8\n")
    with pytest.raises(ConfigError):
        load_config(path, environ={})


@pytest.mark.parametrize("env", [
    {"GHOST_POOL_TREE_DEPTH": "0"},
    {"GHOST_POOL_TREE_DEPTH": "33"},
    {"GHOST_POOL_TREE_DEPTH": "deep"},
    {"GHOST_POOL_ROOT_HISTORY_SIZE": "0"},
    {"GHOST_POOL_LOG_LEVEL": "chatty"},
    {"GHOST_POOL_REDEEM_KEY_PATH": "/does/not/exist.json"},
])
def test_invalid_values(env):
    with pytest.raises(ConfigError):
        load_config(environ=env)


def test_build_verifier_from_key_file(tmp_path):
    key_path = tmp_path / "redeem.json"
    key_path.write_text(json.dumps(REDEEM_VERIFICATION_KEY_JSON))
    config = load_config(environ={"GHOST_POOL_REDEEM_KEY_PATH": str(key_path)})
    verifier = config.build_verifier()
    assert isinstance(verifier, ProofVerifier)
    assert verifier.redeem_key == REDEEM_VERIFICATION_KEY
    assert verifier.partial_redeem_key is None


def test_build_verifier_needs_a_key():
    with pytest.raises(ConfigError):
        PoolConfig().build_verifier()
    assert PoolConfig().build_verifier(REDEEM_VERIFICATION_KEY).redeem_key == REDEEM_VERIFICATION_KEY


def test_yaml_export():
    assert "tree_depth: 20" in PoolConfig().to_yaml()
