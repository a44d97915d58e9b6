"""Shared fixtures: importable project root, fake stores, scripted answers."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


class FakeStoreReader:
    """In-memory store; content None means the store does not exist."""

    def __init__(self, content: str | None = None, path: str = "/home/dev/.docker/config.json",
                 error: Exception | None = None) -> None:
        self.path = path
        self.content = content
        self.error = error
        self.reads = 0

    def read(self) -> str | None:
        self.reads += 1
        if self.error is not None:
            raise self.error
        return self.content


def make_scripted_ask(answers):
    """Replay answers in order; records every prompt shown."""
    queue = list(answers)
    prompts: list[str] = []

    async def ask(text: str) -> str:
        prompts.append(text)
        if not queue:
            raise AssertionError(f"unexpected extra prompt: {text!r}")
        return queue.pop(0)

    ask.prompts = prompts
    ask.remaining = queue
    return ask


@pytest.fixture
def fake_reader():
    return FakeStoreReader


@pytest.fixture
def scripted_ask():
    return make_scripted_ask


@pytest.fixture
def project_dir(tmp_path, monkeypatch):
    """A Node.js project root with package.json and index.js, as cwd."""
    (tmp_path / "package.json").write_text('{"name": "demo"}\n')
    (tmp_path / "index.js").write_text("require('http').createServer().listen(3000)\n")
    monkeypatch.chdir(tmp_path)
    return tmp_path
