import json

import pytest

import main
from antetown.descent import replay
from antetown.rng import generate_seed
from antetown.rules import build_default_registry
from antetown.settings import Settings


def test_replay_json_matches_engine_replay(capsys):
    main.main(["replay", "1234", "--bid", "alice=500", "--exit", "alice=1", "--max-steps", "5", "--json"])
    printed = json.loads(capsys.readouterr().out)
    expected = replay(1234, bids={"alice": 500}, exits={"alice": 1}, max_steps=5)
    assert printed == json.loads(json.dumps(expected))


def test_replay_with_config_file(tmp_path, capsys):
    config_path = tmp_path / "descent.json"
    config_path.write_text(json.dumps({"hazard": {"base": 0.0, "per_depth": 0.0, "per_corruption": 0.0}}))
    main.main(["replay", "7", "--max-steps", "3", "--config", str(config_path)])
    out = capsys.readouterr().out
    assert out.startswith("Seed 7")
    assert "depth   3" in out
    assert "HAZARD" not in out


def test_bad_pair_exits():
    with pytest.raises(SystemExit):
        main.main(["replay", "7", "--bid", "alice"])


def test_seed_command(tmp_path, capsys):
    main.main(["--env-file", str(tmp_path / "none.env"), "seed", "coin-1:r1", "1700000000000",
               "--nonce", "2", "--secret", "abc"])
    assert int(capsys.readouterr().out) == generate_seed("abc", "coin-1:r1", 1700000000000, 2)


def test_build_tables_covers_every_game():
    registry = build_default_registry()
    tables = main.build_tables(Settings(secret="x"), registry)
    ids = [t.table_id for t in tables]
    assert ids[:3] == ["coin-1", "card-1", "descent-1"]
    assert {f"poker-{key}" for key in registry.keys()} <= set(ids)
    assert all(t.secret == "x" for t in tables)
