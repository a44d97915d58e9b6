#!/usr/bin/env python3
"""
Config Loader — deploy-node-app
================================
Builds the settings dict from built-in defaults, an optional
.deploy-node-app.yaml in the project directory, and environment overrides.

Precedence (highest first):
  - Real environment variables
  - .env file in the project directory (never overrides real env vars)
  - .deploy-node-app.yaml
  - Built-in defaults below

Usage:
  from config_loader import load_config
  settings = load_config()
  print(settings["registry"])

Environment overrides:
  DNA_WEBSOCKET_HOST    — pairing websocket host (wss://...)
  DNA_WWW_HOST          — registration web host (https://...)
  DNA_ENV               — default target environment
  DNA_RECONNECT_DELAY   — seconds between reconnect attempts
  DNA_RECONNECT_JITTER  — max random seconds added to the delay
  DOCKER_CONFIG         — directory holding the docker config.json
  KUBECONFIG            — kube config path (first entry is used)
"""
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import dotenv_values

SETTINGS_FILE = ".deploy-node-app.yaml"

KUBESAIL_WEBSOCKET_HOST = "wss://localhost:4000"
KUBESAIL_WWW_HOST = "https://localhost:3000"
KUBESAIL_REGISTRY = "registry.kubesail.io"
KUBESAIL_CONTEXT = "kubesail"

PROTOCOLS = ["http", "https", "tcp"]

DEFAULTS: dict[str, Any] = {
    "websocket_host":     KUBESAIL_WEBSOCKET_HOST,
    "www_host":           KUBESAIL_WWW_HOST,
    "registry":           KUBESAIL_REGISTRY,
    "context":            KUBESAIL_CONTEXT,
    "environment":        "production",
    "port":               "3000",
    "protocol":           "http",
    "entrypoint":         "index.js",
    "reconnect_delay":    0.25,
    "reconnect_jitter":   0.0,
    "required_binaries":  ["docker", "kubectl"],
    "project_descriptor": "package.json",
}

ENV_OVERRIDES = {
    "websocket_host":   "DNA_WEBSOCKET_HOST",
    "www_host":         "DNA_WWW_HOST",
    "environment":      "DNA_ENV",
    "reconnect_delay":  "DNA_RECONNECT_DELAY",
    "reconnect_jitter": "DNA_RECONNECT_JITTER",
}


class ConfigError(ValueError):
    """Settings file or override is invalid."""


def default_docker_config(environ: "dict[str, str] | None" = None) -> Path:
    """Docker keeps config.json in $DOCKER_CONFIG, else ~/.docker."""
    environ = os.environ if environ is None else environ
    base = environ.get("DOCKER_CONFIG")
    if base:
        return Path(base).expanduser() / "config.json"
    return Path.home() / ".docker" / "config.json"


def default_kube_config(environ: "dict[str, str] | None" = None) -> Path:
    """kubectl reads $KUBECONFIG (first entry of the path list), else ~/.kube/config."""
    environ = os.environ if environ is None else environ
    paths = [p for p in environ.get("KUBECONFIG", "").split(os.pathsep) if p]
    if paths:
        return Path(paths[0]).expanduser()
    return Path.home() / ".kube" / "config"


def load_config(
    config_path: "str | Path | None" = None,
    env_file: "str | Path | None" = None,
    environ: "dict[str, str] | None" = None,
) -> dict[str, Any]:
    """
    Load deploy-node-app settings.

    Args:
        config_path: Settings YAML (default: .deploy-node-app.yaml in cwd, optional)
        env_file:    .env file (default: .env in cwd, optional)
        environ:     Environment mapping (default: os.environ)

    Returns:
        Complete settings dict; every key in DEFAULTS is always present

    Raises:
        ConfigError: If the settings file is not valid YAML, has unknown keys,
                     or a value is out of range
    """
    cfg_file = Path(config_path) if config_path else Path.cwd() / SETTINGS_FILE
    dotenv_file = Path(env_file) if env_file else Path.cwd() / ".env"

    cfg: dict[str, Any] = dict(DEFAULTS)
    cfg["required_binaries"] = list(DEFAULTS["required_binaries"])

    if cfg_file.exists():
        try:
            with open(cfg_file) as f:
                loaded = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            # PyYAML messages span several lines; fatal() prints exactly one
            where = ""
            mark = getattr(e, "problem_mark", None)
            if mark is not None:
                where = f" (line {mark.line + 1}, column {mark.column + 1})"
            raise ConfigError(f"Settings file {cfg_file} is not valid yaml, or unreadable{where}") from e
        if not isinstance(loaded, dict):
            raise ConfigError(f"Settings file {cfg_file} must contain a mapping of settings")
        unknown = sorted(set(loaded) - set(DEFAULTS) - {"docker_config", "kube_config"})
        if unknown:
            raise ConfigError(f"Settings file {cfg_file} has unknown keys: {unknown}")
        cfg.update(loaded)

    # Real environment wins over .env
    env: dict[str, str] = {}
    if dotenv_file.exists():
        env.update({k: v for k, v in dotenv_values(dotenv_file).items() if v is not None})
    env.update(os.environ if environ is None else environ)

    for key, var in ENV_OVERRIDES.items():
        if env.get(var):
            cfg[key] = env[var]

    for key in ("reconnect_delay", "reconnect_jitter"):
        try:
            cfg[key] = float(cfg[key])
        except (TypeError, ValueError):
            raise ConfigError(f"{key} must be a number of seconds, got {cfg[key]!r}") from None
        if cfg[key] < 0:
            raise ConfigError(f"{key} must not be negative, got {cfg[key]}")

    if cfg["protocol"] not in PROTOCOLS:
        raise ConfigError(f"protocol must be one of {PROTOCOLS}, got {cfg['protocol']!r}")
    cfg["port"] = str(cfg["port"])

    for key, fallback in (("docker_config", default_docker_config), ("kube_config", default_kube_config)):
        cfg[key] = Path(cfg[key]).expanduser() if cfg.get(key) else fallback(env)
    return cfg


if __name__ == "__main__":
    """Quick validation — run: python3 config_loader.py"""
    import sys
    try:
        settings = load_config()
        print("Configuration loaded successfully")
        for k, v in settings.items():
            print(f"   {k + ':':<20} {v}")
    except ConfigError as e:
        print(f"Configuration error: {e}")
        sys.exit(1)
