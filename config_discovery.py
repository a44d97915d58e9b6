#!/usr/bin/env python3
"""
Config Discovery — deploy-node-app
===================================
Reads the user's existing docker and kubectl configuration to offer
registries and contexts they already use as wizard choices.

  ~/.docker/config.json  — registry hostnames are the keys of "auths"
  ~/.kube/config         — context names, resolved as
                           name -> context.name -> context.cluster

Both stores are optional. A missing store yields only the well-known default
(registry.kubesail.io / kubesail), which is always listed last. A store that
exists but cannot be parsed raises ConfigParseError naming the file: the user
has a broken config they need to fix.
"""
import json
import logging
from pathlib import Path
from typing import Any, Protocol

import yaml

from config_loader import KUBESAIL_CONTEXT, KUBESAIL_REGISTRY, default_docker_config, default_kube_config

logger = logging.getLogger(__name__)


class ConfigParseError(ValueError):
    """A local config store exists but is not valid, or unreadable."""

    def __init__(self, message: str, path: "str | Path"):
        super().__init__(message)
        self.path = str(path)


class StoreReader(Protocol):
    path: "str | Path"

    def read(self) -> "str | None":
        """Raw store contents, or None if the store does not exist."""


class FileStoreReader:
    """Reads a store from the filesystem."""

    def __init__(self, path: "str | Path"):
        self.path = Path(path)

    def read(self) -> "str | None":
        if not self.path.exists():
            return None
        return self.path.read_text(encoding="utf-8")

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self.path)!r})"


class RegistryStoreReader(FileStoreReader):
    def __init__(self, path: "str | Path | None" = None):
        super().__init__(path or default_docker_config())


class ContextStoreReader(FileStoreReader):
    def __init__(self, path: "str | Path | None" = None):
        super().__init__(path or default_kube_config())


def _with_default(candidates: list[str], default: str) -> list[str]:
    """Dedupe keeping first-seen order, then put the default last."""
    seen = dict.fromkeys(c for c in candidates if c != default)
    return [*seen, default]


def discover_registries(reader: "StoreReader | None" = None,
                        default: str = KUBESAIL_REGISTRY) -> list[str]:
    """Registry hostnames from the docker credential store, default last."""
    reader = reader or RegistryStoreReader()
    message = (f"It seems you have a Docker config.json file at {reader.path}, "
               f"but it is not valid json, or unreadable!")
    try:
        raw = reader.read()
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigParseError(message, reader.path) from e
    if raw is None:
        logger.debug("No docker config at %s", reader.path)
        return [default]

    try:
        doc: Any = json.loads(raw)
    except ValueError as e:
        raise ConfigParseError(message, reader.path) from e
    if not isinstance(doc, dict):
        raise ConfigParseError(message, reader.path)
    auths = doc.get("auths") or {}
    if not isinstance(auths, dict):
        raise ConfigParseError(message, reader.path)

    logger.debug("Found %d registries in %s", len(auths), reader.path)
    return _with_default(list(auths), default)


def _context_name(entry: dict) -> "str | None":
    nested = entry.get("context")
    if not isinstance(nested, dict):
        nested = {}
    return entry.get("name") or nested.get("name") or nested.get("cluster")


def discover_contexts(reader: "StoreReader | None" = None,
                      default: str = KUBESAIL_CONTEXT) -> list[str]:
    """Context names from the kube config, default last."""
    reader = reader or ContextStoreReader()
    message = (f"It seems you have a Kubernetes config file at {reader.path}, "
               f"but it is not valid yaml, or unreadable!")
    try:
        raw = reader.read()
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigParseError(message, reader.path) from e
    if raw is None:
        logger.debug("No kube config at %s", reader.path)
        return [default]

    try:
        doc: Any = yaml.safe_load(raw) or {}
    except yaml.YAMLError as e:
        raise ConfigParseError(message, reader.path) from e
    if not isinstance(doc, dict):
        raise ConfigParseError(message, reader.path)
    entries = doc.get("contexts") or []
    if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
        raise ConfigParseError(message, reader.path)

    names = [str(n) for n in map(_context_name, entries) if n]
    logger.debug("Found %d contexts in %s", len(names), reader.path)
    return _with_default(names, default)
