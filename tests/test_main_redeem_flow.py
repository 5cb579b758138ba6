"""Demo driver smoke tests."""

import pytest

import main_redeem_flow


@pytest.fixture(autouse=True)
def small_tree(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("GHOST_POOL_TREE_DEPTH", "4")
    monkeypatch.setenv("GHOST_POOL_ROOT_HISTORY_SIZE", "8")


def test_full_redemption(capsys):
    assert main_redeem_flow.main(["--decoys", "3", "--seed", "7"]) == 0
    out = capsys.readouterr().out
    assert "leaves        4" in out
    assert "replay        nullifier_spent" in out


def test_partial_redemption(capsys):
    assert main_redeem_flow.main(["--amount", "1000", "--redeem", "250", "--decoys", "2", "--seed", "7"]) == 0
    out = capsys.readouterr().out
    assert "remaining     750" in out
    assert "leaves        4" in out


def test_bad_config():
    assert main_redeem_flow.main(["--config", "missing.yaml"]) == 2


@pytest.mark.parametrize("argv", [
    ["--redeem", "1500"],
    ["--redeem", "0"],
    ["--amount", "0"],
    ["--amount", "-5"],
    ["--decoys", "-1"],
])
def test_rejects_bad_amounts(argv, capsys):
    with pytest.raises(SystemExit) as exc_info:
        main_redeem_flow.main(argv)
    assert exc_info.value.code == 2
    assert "must" in capsys.readouterr().err
