#!/usr/bin/env python3
"""
deploy-node-app — Interactive Question Flow
============================================
Asks the six deployment questions in order, re-asking each one in place
until its answer validates. Accepted answers are never revisited.

  [1/6] env         — target environment name
  [2/6] port        — port the app listens on
  [3/6] protocol    — http / https / tcp
  [4/6] entrypoint  — file that starts the app (must exist)
  [5/6] context     — Kubernetes context
  [6/6] registry    — container registry hostname

Input comes from an ``ask`` coroutine so the flow can be scripted in tests;
the default reads the terminal without blocking the event loop.
"""
import asyncio
import os
import re
from dataclasses import asdict, dataclass
from typing import Any, Awaitable, Callable, Optional

from config_loader import DEFAULTS
from config_loader import PROTOCOLS as PROTOCOL_NAMES

# ── ANSI colours ──────────────────────────────────────────────
BOLD="\033[1m"; DIM="\033[2m"; CYAN="\033[36m"
GREEN="\033[32m"; YELLOW="\033[33m"; RED="\033[31m"; RESET="\033[0m"

def bold(s):   return f"{BOLD}{s}{RESET}"
def dim(s):    return f"{DIM}{s}{RESET}"
def cyan(s):   return f"{CYAN}{s}{RESET}"
def green(s):  return f"{GREEN}{s}{RESET}"
def yellow(s): return f"{YELLOW}{s}{RESET}"
def red(s):    return f"{RED}{s}{RESET}"

# ── Option tables ──────────────────────────────────────────────
PROTOCOL_DESCRIPTIONS = {
    "http":  "Plain HTTP — TLS terminated in front of the app (recommended)",
    "https": "App serves TLS itself",
    "tcp":   "Raw TCP — databases, game servers, anything not HTTP",
}
PROTOCOLS = [(p, PROTOCOL_DESCRIPTIONS.get(p, "")) for p in PROTOCOL_NAMES]

ENV_PATTERN = re.compile(r"^[a-zA-Z0-9-_]+$")
# parseInt(x, 10) semantics: leading whitespace, optional sign, at least one digit
PORT_PATTERN = re.compile(r"^\s*[+-]?\d")
REGISTRY_PATTERN = re.compile(r"^([a-z0-9]+\.)+[a-z0-9]+$", re.IGNORECASE)

Ask = Callable[[str], Awaitable[str]]
Validator = Callable[[str], Optional[str]]


@dataclass(frozen=True)
class Answers:
    env: str
    port: str
    protocol: str
    entrypoint: str
    context: str
    registry: str

    def as_dict(self) -> dict[str, str]:
        return asdict(self)


# ── Validators: None when valid, else the message to show ─────
def validate_env(value: str) -> Optional[str]:
    if value != value.lower():
        return "environment names must be lowercase"
    if len(value) < 3:
        return "environment names must be longer than 2 characters"
    if not ENV_PATTERN.match(value):
        return "environment names need to be numbers, letters, and dashes only"
    return None


def validate_port(value: str) -> Optional[str]:
    if not PORT_PATTERN.match(value):
        return "ports must be numbers!"
    return None


def validate_entrypoint(value: str) -> Optional[str]:
    if not os.path.exists(value):
        return "That file doesn't seem to exist"
    return None


def validate_registry(value: str) -> Optional[str]:
    if not REGISTRY_PATTERN.match(value):
        return "You must provide a valid hostname for a docker registry"
    return None


# ── UI helpers ────────────────────────────────────────────────
def hdr(title: str):
    print(f"\n{CYAN}{'='*62}{RESET}")
    print(f"{CYAN}  {BOLD}{title}{RESET}")
    print(f"{CYAN}{'='*62}{RESET}")

def sec(num: int, total: int, title: str):
    print(f"\n{BOLD}{CYAN}[{num}/{total}] {title}{RESET}")
    print(f"{DIM}{'-'*50}{RESET}")

def row(k: str, v: Any, width: int = 16):
    print(f"  {bold(k.ljust(width))} {v}")


async def console_ask(text: str) -> str:
    """Read one line from the terminal in a worker thread."""
    return await asyncio.to_thread(input, text)


async def prompt(ask: Ask, q: str, default: str = "",
                 validate: Optional[Validator] = None) -> str:
    """Free-text question; empty input takes the default, then validates."""
    sfx = f" [{dim(default)}]" if default else ""
    while True:
        v = (await ask(f"  {q}{sfx}: ")).strip() or default
        if not v:
            print(f"  {red('Required.')}")
            continue
        error = validate(v) if validate else None
        if error is None:
            return v
        print(f"  {red(error)}")


async def choose(ask: Ask, opts: list, default: Optional[str] = None,
                 validate: Optional[Validator] = None, free_text: bool = False) -> str:
    """
    Numbered menu over (value, description) pairs.

    Accepts the menu number or the value itself. With free_text, any other
    input is passed to the validator instead of being rejected.
    """
    values = [v for v, _ in opts]
    for i, (v, d) in enumerate(opts, 1):
        marker = green("->") if v == default else "  "
        print(f"    {marker} {bold(str(i))}. {bold(v):<16} {dim(d)}")
    if default is not None:
        hint = default
    else:
        hint = f"1-{len(opts)} or hostname" if free_text else f"1-{len(opts)}"
    bad_choice = f"Enter 1-{len(opts)} or one of: {', '.join(values)}"
    while True:
        raw = (await ask(f"  Choice [{dim(hint)}]: ")).strip()
        if not raw:
            if default is None:
                print(f"  {red('Required.')}")
                continue
            choice = default
        elif raw.isdigit() and 1 <= int(raw) <= len(opts):
            choice = values[int(raw) - 1]
        elif raw in values or free_text:
            choice = raw
        else:
            print(f"  {red(bad_choice)}")
            continue
        error = validate(choice) if validate else None
        if error is None:
            return choice
        print(f"  {red(error)}")


# ════════════════════════════════════════════════════════════════
#  WIZARD — 6-step question flow
# ════════════════════════════════════════════════════════════════
async def run_wizard(registries: list[str], contexts: list[str],
                     env: Optional[str] = None, ask: Optional[Ask] = None,
                     settings: Optional[dict] = None) -> Answers:
    """Run the question flow. Returns the validated Answers."""
    ask = ask or console_ask
    settings = settings or DEFAULTS
    default_registry = settings["registry"]
    default_context = settings["context"]

    hdr("DEPLOY NODE APP")
    print(f"  {dim('Press Enter to accept the default shown in [brackets].')}")
    print(f"  {dim('Ctrl+C at any time to abort.')}")

    TOTAL = 6

    sec(1, TOTAL, "ENVIRONMENT")
    answer_env = await prompt(ask, "Which environment are you deploying to?",
                              env or settings["environment"], validate_env)

    sec(2, TOTAL, "PORT")
    port = await prompt(ask, "What port does your application listen on?",
                        settings["port"], validate_port)

    sec(3, TOTAL, "PROTOCOL")
    print(f"  {bold('Which protocol does your application speak?')}")
    protocol = await choose(ask, PROTOCOLS, settings["protocol"])

    sec(4, TOTAL, "ENTRYPOINT")
    entrypoint = await prompt(ask, "Where is your application's entrypoint?",
                              settings["entrypoint"], validate_entrypoint)

    sec(5, TOTAL, "KUBERNETES CONTEXT")
    print(f"  {bold('Which Kubernetes context do you want to use?')}")
    context_opts = [(c, "KubeSail hosted cluster" if c == default_context else "from your kube config")
                    for c in contexts]
    context = await choose(ask, context_opts, contexts[0])

    sec(6, TOTAL, "CONTAINER REGISTRY")
    print(f"  {bold('Which docker registry do you want to use?')}")
    print(f"  {dim('Pick a number, or type another registry hostname.')}")
    # Docker stores keys such as https://index.docker.io/v1/; only offer pickable hostnames
    registry_opts = [(r, "KubeSail registry — sign up in your browser" if r == default_registry
                      else "credentials in your docker config")
                     for r in registries if validate_registry(r) is None]
    registry = await choose(ask, registry_opts, validate=validate_registry, free_text=True)

    return Answers(env=answer_env, port=port, protocol=protocol,
                   entrypoint=entrypoint, context=context, registry=registry)


def print_summary(answers: Answers, pairing: bool = False):
    """Print the collected answers."""
    hdr("DEPLOYMENT SETTINGS")
    print()
    row("Environment:", answers.env)
    row("Port:",        f"{answers.port}/{answers.protocol}")
    row("Entrypoint:",  answers.entrypoint)
    row("Context:",     answers.context)
    row("Registry:",    answers.registry)
    print()
    if pairing:
        print(f"  {yellow('Finish registration in the browser window that just opened.')}")
