#!/usr/bin/env python3
"""
deploy-node-app — Orchestrator
===============================
Collects deployment settings for a Node.js app and, when the KubeSail
registry is chosen, pairs this run with a KubeSail account in the browser.

Steps:
  1. Preflight: docker + kubectl on PATH, package.json in the working dir
  2. Discover registries (~/.docker/config.json) and contexts (~/.kube/config)
  3. Ask the six deployment questions
  4. KubeSail registry chosen -> start the pairing session
  5. Print the collected answers

Usage:
  deploy-node-app              # target environment defaults to "production"
  deploy-node-app staging
  deploy-node-app staging -v   # debug logging

Exit codes: 0 on completion, 1 on any fatal precondition or config error.
"""
import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from pathlib import Path
from typing import Callable, Optional

from config_discovery import (ConfigParseError, ContextStoreReader, RegistryStoreReader,
                              StoreReader, discover_contexts, discover_registries)
from config_loader import ConfigError, load_config
from pairing_session import PairingSession
from preflight_check import PreflightError, check_binaries, check_project
from wizard import RED, RESET, Answers, Ask, dim, print_summary, run_wizard, yellow

logger = logging.getLogger(__name__)

ERR_ARROWS = f"{RED}>>{RESET}"


def fatal(message: str) -> None:
    """Single-line diagnostic on stderr, then exit 1."""
    sys.stderr.write(f"{ERR_ARROWS} {message}\n")
    sys.exit(1)


async def deploy_node_app(
    env: Optional[str] = None,
    settings: Optional[dict] = None,
    ask: Optional[Ask] = None,
    registry_reader: Optional[StoreReader] = None,
    context_reader: Optional[StoreReader] = None,
    session_factory: Callable[[dict], PairingSession] = PairingSession.from_settings,
    cwd: "str | Path | None" = None,
) -> "tuple[Answers, Optional[PairingSession]]":
    """
    Run preflight, discovery and the question flow.

    Returns the answers and, when the KubeSail registry was chosen, the
    started pairing session. The session is not awaited here; the caller
    owns it and must stop() it.

    Raises:
        PreflightError:   missing binary or not a Node.js project
        ConfigParseError: docker or kube config present but unparseable
    """
    settings = settings or load_config()

    check_binaries(settings["required_binaries"])
    check_project(cwd, settings["project_descriptor"])

    contexts = discover_contexts(context_reader or ContextStoreReader(settings["kube_config"]),
                                 default=settings["context"])
    registries = discover_registries(registry_reader or RegistryStoreReader(settings["docker_config"]),
                                     default=settings["registry"])
    logger.debug("contexts=%s registries=%s", contexts, registries)

    answers = await run_wizard(registries, contexts, env=env, ask=ask, settings=settings)

    session = None
    if answers.registry == settings["registry"]:
        session = session_factory(settings).start()
    return answers, session


async def hold_pairing(session: PairingSession) -> None:
    """Keep the pairing session alive until SIGTERM or Ctrl+C, then stop it."""
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not available on Windows event loops; Ctrl+C then cancels us instead
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)
            installed.append(sig)
    try:
        await stop.wait()
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)
        await session.stop()


async def _main(env: Optional[str]) -> None:
    settings = load_config()
    answers, session = await deploy_node_app(env, settings)
    print_summary(answers, pairing=session is not None)
    if session is not None:
        print(f"  {dim('Registration page:')} {session.registration_url}")
        print(f"  {dim('Waiting for KubeSail. Ctrl+C when registration is done.')}")
        await hold_pairing(session)
        print(f"\n  {dim('Pairing session closed.')}")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        prog="deploy-node-app",
        description="Collect deployment settings for a Node.js application",
    )
    parser.add_argument("env", nargs="?", default=None,
                        help="Target environment (default: production)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        asyncio.run(_main(args.env))
    except (PreflightError, ConfigParseError, ConfigError) as e:
        fatal(str(e))
    except (KeyboardInterrupt, EOFError):
        print(f"\n\n  {yellow('Wizard aborted.')}")
    sys.exit(0)


if __name__ == "__main__":
    main()
