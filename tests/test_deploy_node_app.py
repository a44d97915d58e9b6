from __future__ import annotations

import asyncio
import shutil
import uuid
from unittest.mock import MagicMock

import pytest

import wizard
from config_discovery import ConfigParseError
from config_loader import KUBESAIL_REGISTRY, load_config
from deploy_node_app import deploy_node_app, hold_pairing, main
from pairing_session import ConnectionState, PairingSession
from preflight_check import PreflightError

INPUTS = ["staging", "8080", "http", "index.js", "kubesail"]
EXPECTED = {"env": "staging", "port": "8080", "protocol": "http",
            "entrypoint": "index.js", "context": "kubesail"}


@pytest.fixture
def settings(tmp_path):
    return load_config(config_path=tmp_path / "absent.yaml", env_file=tmp_path / "absent.env", environ={})


@pytest.fixture
def tools_installed(monkeypatch):
    monkeypatch.setattr(shutil, "which", lambda name: f"/usr/local/bin/{name}")


class _IdleConnect:
    """websockets.connect stand-in that never completes the handshake."""

    def __call__(self, url):
        return self

    async def __aenter__(self):
        await asyncio.Event().wait()

    async def __aexit__(self, *exc):
        return False


@pytest.mark.asyncio
async def test_custom_registry_does_not_pair(project_dir, tools_installed, settings,
                                             fake_reader, scripted_ask):
    factory = MagicMock()
    answers, session = await deploy_node_app(
        settings=settings,
        ask=scripted_ask(INPUTS + ["registry.io"]),
        registry_reader=fake_reader(None),
        context_reader=fake_reader(None, path="/home/dev/.kube/config"),
        session_factory=factory,
    )
    assert answers.as_dict() == {**EXPECTED, "registry": "registry.io"}
    assert session is None
    factory.assert_not_called()


@pytest.mark.asyncio
async def test_kubesail_registry_starts_pairing(project_dir, tools_installed, settings,
                                                fake_reader, scripted_ask):
    opened: list[str] = []

    def factory(s):
        return PairingSession.from_settings(s, connect=_IdleConnect(), open_browser=opened.append)

    answers, session = await deploy_node_app(
        settings=settings,
        ask=scripted_ask(INPUTS + [KUBESAIL_REGISTRY]),
        registry_reader=fake_reader(None),
        context_reader=fake_reader(None, path="/home/dev/.kube/config"),
        session_factory=factory,
    )
    assert answers.as_dict() == {**EXPECTED, "registry": KUBESAIL_REGISTRY}
    assert uuid.UUID(session.session_id)
    assert opened == [f"https://localhost:3000/register?session={session.session_id}"]

    # returned without waiting on the pairing outcome; the caller owns the handle
    assert session.running
    await asyncio.sleep(0)
    assert session.state is ConnectionState.CONNECTING
    await session.stop()
    assert not session.running


@pytest.mark.asyncio
async def test_discovered_values_become_choices(project_dir, tools_installed, settings,
                                                fake_reader, scripted_ask):
    docker = fake_reader('{"auths": {"ghcr.io": {}}}')
    kube = fake_reader("contexts:\n  - name: prod-eu\n", path="/home/dev/.kube/config")
    ask = scripted_ask(["", "", "", "", "", "1"])
    answers, session = await deploy_node_app(settings=settings, ask=ask, registry_reader=docker,
                                             context_reader=kube, session_factory=MagicMock())
    assert answers.context == "prod-eu"
    assert answers.registry == "ghcr.io"
    assert session is None


@pytest.mark.asyncio
async def test_missing_binary_is_fatal_before_prompting(project_dir, monkeypatch, settings,
                                                        scripted_ask):
    monkeypatch.setattr(shutil, "which", lambda name: None if name == "kubectl" else "/bin/" + name)
    ask = scripted_ask([])
    with pytest.raises(PreflightError, match="You need to install kubectl!"):
        await deploy_node_app(settings=settings, ask=ask)
    assert ask.prompts == []


@pytest.mark.asyncio
async def test_not_a_node_project(tmp_path, monkeypatch, tools_installed, settings, scripted_ask):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(PreflightError, match="npm init"):
        await deploy_node_app(settings=settings, ask=scripted_ask([]))


@pytest.mark.asyncio
async def test_broken_docker_config_is_fatal(project_dir, tools_installed, settings,
                                             fake_reader, scripted_ask):
    with pytest.raises(ConfigParseError) as exc:
        await deploy_node_app(settings=settings, ask=scripted_ask([]),
                              registry_reader=fake_reader("{oops", path="/home/dev/.docker/config.json"),
                              context_reader=fake_reader(None))
    assert exc.value.path == "/home/dev/.docker/config.json"


@pytest.mark.asyncio
async def test_hold_pairing_stops_session_on_shutdown():
    session = PairingSession(connect=_IdleConnect(), open_browser=lambda url: True).start()
    holder = asyncio.create_task(hold_pairing(session))
    await asyncio.sleep(0)
    holder.cancel()
    with pytest.raises(asyncio.CancelledError):
        await holder
    assert not session.running
    assert session.state is ConnectionState.CLOSED


# ---------- CLI ----------


@pytest.fixture
def clean_home(tmp_path, monkeypatch):
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for var in ("DOCKER_CONFIG", "KUBECONFIG", "DNA_ENV", "DNA_WEBSOCKET_HOST", "DNA_WWW_HOST",
                "DNA_RECONNECT_DELAY", "DNA_RECONNECT_JITTER"):
        monkeypatch.delenv(var, raising=False)
    return home


def test_main_exits_zero_after_summary(project_dir, clean_home, tools_installed, monkeypatch,
                                       scripted_ask, capsys):
    monkeypatch.setattr(wizard, "console_ask", scripted_ask(["", "", "", "", "", "registry.io"]))
    with pytest.raises(SystemExit) as exc:
        main(["staging"])
    assert exc.value.code == 0
    out = capsys.readouterr().out
    assert "DEPLOYMENT SETTINGS" in out
    assert "staging" in out
    assert "registry.io" in out


def test_main_fatal_exits_one_with_single_line(tmp_path, clean_home, tools_installed, monkeypatch,
                                               capsys):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(SystemExit) as exc:
        main([])
    assert exc.value.code == 1
    err = capsys.readouterr().err
    assert err.count("\n") == 1
    assert ">>" in err
    assert "This doesn't appear to be a Node.js application" in err


def test_main_broken_settings_file_is_single_line(project_dir, clean_home, tools_installed, capsys):
    (project_dir / ".deploy-node-app.yaml").write_text("port: [unclosed\n")
    with pytest.raises(SystemExit) as exc:
        main([])
    assert exc.value.code == 1
    err = capsys.readouterr().err
    assert err.count("\n") == 1
    assert ".deploy-node-app.yaml" in err
    assert "not valid yaml" in err
    assert "line " in err


def test_main_reports_broken_kube_config(project_dir, clean_home, tools_installed, capsys):
    kube = clean_home / ".kube"
    kube.mkdir()
    (kube / "config").write_text("contexts: [unclosed")
    with pytest.raises(SystemExit) as exc:
        main([])
    assert exc.value.code == 1
    assert str(kube / "config") in capsys.readouterr().err
