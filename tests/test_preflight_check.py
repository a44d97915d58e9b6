import shutil

import pytest

import preflight_check
from preflight_check import PreflightError, check_binaries, check_project, run_preflight

SETTINGS = {"required_binaries": ["docker", "kubectl"], "project_descriptor": "package.json"}


def test_check_binaries_reports_first_missing(monkeypatch):
    monkeypatch.setattr(shutil, "which", lambda name: None)
    with pytest.raises(PreflightError, match="You need to install docker!"):
        check_binaries(["docker", "kubectl"])


def test_check_binaries_passes_when_all_resolve(monkeypatch):
    monkeypatch.setattr(shutil, "which", lambda name: f"/usr/bin/{name}")
    check_binaries(["docker", "kubectl"])
    assert preflight_check.binary_in_path("docker")


def test_check_project(tmp_path):
    with pytest.raises(PreflightError, match="npm init"):
        check_project(tmp_path)
    (tmp_path / "package.json").write_text("{}")
    assert check_project(tmp_path) == tmp_path / "package.json"


def test_run_preflight_collects_every_failure(tmp_path, monkeypatch):
    monkeypatch.setattr(shutil, "which", lambda name: None)
    errors = run_preflight(SETTINGS, tmp_path)
    assert errors == [
        "You need to install docker!",
        "You need to install kubectl!",
        "This doesn't appear to be a Node.js application - run 'npm init'?",
    ]


def test_main_report(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(shutil, "which", lambda name: f"/usr/bin/{name}")
    (tmp_path / "package.json").write_text("{}")
    assert preflight_check.main() == 0
    assert "READY" in capsys.readouterr().out
