import sys
from types import SimpleNamespace

import cli
from kodar.config import DEFAULT_K
from kodar.orchestrator import run_once
from kodar.store import RecordStore


def test_cli_always_passes_default_k(monkeypatch, capsys):
    seen = {}

    def fake_run_once(dataset, *, config_path=None, overrides=None):
        seen.update(dataset=dataset, config_path=config_path, overrides=overrides)
        return SimpleNamespace(evaluation=SimpleNamespace(hard=0.25, fuzzy=0.5))

    monkeypatch.setattr(cli, "run_once", fake_run_once)
    monkeypatch.setattr(sys, "argv", ["kodar", "data.csv", "--evaluate", "--labeling-mode", "semantic_fingerprint"])
    cli.main()
    assert seen == {
        "dataset": "data.csv",
        "config_path": None,
        "overrides": {"k": DEFAULT_K, "evaluate": True, "labeling_mode": "semantic_fingerprint"},
    }
    assert "kmeans=0.2500 fkmeans=0.5000" in capsys.readouterr().out


def test_cli_leaves_unset_flags_to_config(monkeypatch):
    seen = {}
    monkeypatch.setattr(cli, "run_once", lambda dataset, **kw: seen.update(kw) or SimpleNamespace(evaluation=None))
    monkeypatch.setattr(sys, "argv", ["kodar", "data.csv", "--config", "configs/kodar.yaml"])
    cli.main()
    assert seen["config_path"] == "configs/kodar.yaml"
    assert seen["overrides"] == {"k": DEFAULT_K, "evaluate": None, "labeling_mode": None}


def test_run_once_applies_overrides(tmp_path, dataset):
    cfg = tmp_path / "kodar.yaml"
    cfg.write_text("clustering:\n  k: 1\nlabeling:\n  categorizer:\n    enabled: false\n", encoding="utf-8")
    home = tmp_path / "home"

    result = run_once(str(dataset), config_path=str(cfg),
                      overrides={"k": DEFAULT_K, "evaluate": True, "home": str(home)})

    assert result.workspace.home == home
    assert result.evaluation is not None
    # k=16 replaces the file's k=1 and is clamped to the two points
    seeds = list(RecordStore().read_all(home / "kmeans" / "clusters-0"))
    assert len(seeds) == 2
