from __future__ import annotations

import argparse
import asyncio
import getpass
import json
import sys
from typing import Any

import httpx

from .config import LLMCoreConfig
from .contracts import CompletionRequest
from .core import LLMCore
from .credentials import EncryptedCredentialStore
from .errors import LLMCoreError, ModelRequiredError
from .logging import configure_logging

EXIT_OK = 0
EXIT_RUNTIME_ERROR = 1
EXIT_CLIENT_ERROR = 2

USAGE = """\
llm-core - Shared LLM transport layer

Usage:
  llm-core "prompt text" [options]
  llm-core --list-services
  llm-core --set-key NAME

Options:
  --service NAME       Service name from services.toml (default: from config)
  --model NAME         Model name (required unless the service sets default_model)
  --system PROMPT      System prompt
  --temperature NUM    0-1 (default: provider default)
  --max-tokens NUM     Max output tokens
  --json               Request JSON output mode
  --list-services      List configured services
  --set-key NAME       Store a secret (read from stdin) in the credential store

Examples:
  llm-core "hello" --service ollama --model llama3
  llm-core "summarize this" --service anthropic --model claude-3-5-haiku-20241022
  llm-core --list-services

Output: JSON to stdout, diagnostics to stderr
Exit codes: 0 = success, 1 = API/runtime error, 2 = client error
"""


async def run_completion(request: CompletionRequest | dict[str, Any], core: LLMCore | None = None) -> dict[str, Any]:
    """Run one completion and return the envelope as a JSON-ready dict."""
    if not isinstance(request, CompletionRequest):
        request = CompletionRequest.model_validate(request)
    owned = core is None
    core = core or LLMCore()
    try:
        result = await core.complete(request)
    finally:
        if owned:
            await core.close()
    return result.model_dump()


def list_service_names(core: LLMCore | None = None) -> list[str]:
    if core is not None:
        return core.list_services()
    from .services import list_services

    return list_services()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="llm-core", usage=USAGE, add_help=False)
    parser.add_argument("prompt", nargs="?")
    parser.add_argument("--service")
    parser.add_argument("--model")
    parser.add_argument("--system", dest="system_prompt")
    parser.add_argument("--temperature", type=float)
    parser.add_argument("--max-tokens", dest="max_tokens", type=int)
    parser.add_argument("--json", dest="json_mode", action="store_true")
    parser.add_argument("--list-services", action="store_true")
    parser.add_argument("--set-key", dest="set_key")
    parser.add_argument("-h", "--help", action="store_true")
    return parser


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2))


def _read_secret() -> str:
    if sys.stdin.isatty():
        return getpass.getpass("Secret: ")
    return sys.stdin.read().strip()


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        sys.stderr.write(USAGE)
        return EXIT_OK

    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit:
        return EXIT_CLIENT_ERROR
    if args.help:
        sys.stderr.write(USAGE)
        return EXIT_OK

    cfg = LLMCoreConfig()
    configure_logging(level=cfg.log_level, fmt="console", secrets=[s for s in (cfg.fernet_key,) if s])

    try:
        if args.list_services:
            _emit(list_service_names())
            return EXIT_OK

        if args.set_key:
            store = EncryptedCredentialStore(cfg.credentials_file(), cfg.fernet_key)
            store.put(args.set_key, _read_secret())
            _emit({"stored": args.set_key, "path": str(store.path)})
            return EXIT_OK

        if not args.prompt:
            sys.stderr.write("Error: Prompt required\n\n" + USAGE)
            return EXIT_CLIENT_ERROR

        try:
            request = CompletionRequest(
                prompt=args.prompt,
                service=args.service,
                model=args.model,
                system_prompt=args.system_prompt,
                temperature=args.temperature,
                max_tokens=args.max_tokens,
                json_mode=args.json_mode,
            )
        except ValueError as e:
            sys.stderr.write(f"Error: {e}\n\n" + USAGE)
            return EXIT_CLIENT_ERROR

        _emit(asyncio.run(run_completion(request)))
        return EXIT_OK
    except ModelRequiredError as e:
        sys.stderr.write(f"Error: {e}\n\n" + USAGE)
        return EXIT_CLIENT_ERROR
    except (LLMCoreError, httpx.HTTPError) as e:
        _emit({"error": str(e)})
        sys.stderr.write(f"Error: {e}\n")
        return EXIT_RUNTIME_ERROR


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
