"""
CLI entry point for the Writer AI service.

Usage:
    python main.py serve [--host 127.0.0.1] [--port 8989]
    python main.py process --text "..."
    python main.py check
    python main.py cache {cleanup,clear,stats}
    python main.py init-config [--force]

Every command accepts ``--config PATH`` before the subcommand.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from writer_ai.config import (
    default_config_path,
    get_settings,
    mask_secret,
    write_default_config,
)
from writer_ai.exceptions import WriterAIException
from writer_ai.logging_setup import configure_logging


def _load(args):
    config_path = Path(args.config) if args.config else None
    settings = get_settings(config_path=config_path)
    configure_logging(settings.logging)
    return settings


async def _probe(settings):
    from writer_ai.providers.base import ProviderRequestContext
    from writer_ai.providers.factory import build_adapter

    llm = settings.llm
    adapter = build_adapter(llm.family, timeout_seconds=llm.timeout_seconds)
    try:
        return await adapter.probe(ProviderRequestContext.from_settings(llm))
    finally:
        await adapter.aclose()


def cmd_serve(args):
    """Start the REST API under uvicorn."""
    import uvicorn

    from writer_ai.api.app import create_app

    settings = _load(args)
    if not asyncio.run(_probe(settings)):
        print("Warning: LLM API self-test failed; requests may fail.", file=sys.stderr)

    app = create_app(settings)
    host = args.host or settings.api.host
    port = args.port or settings.api.port
    print(f"Starting Writer AI on http://{host}:{port}")
    uvicorn.run(app, host=host, port=port, log_config=None)


def cmd_process(args):
    """Run one text through the pipeline."""
    from writer_ai.pipeline import build_pipeline

    settings = _load(args)

    async def run():
        pipeline = build_pipeline(settings)
        try:
            return await pipeline.process(args.text)
        finally:
            await pipeline.aclose()

    result = asyncio.run(run())
    print(json.dumps(result.model_dump(), indent=2))


def cmd_check(args):
    """Provider connectivity self-test."""
    settings = _load(args)
    llm = settings.llm
    print(f"Provider family: {llm.family.value}")
    print(f"URL:             {llm.url}")
    print(f"Model:           {llm.model_name}")
    print(f"API key:         {mask_secret(llm.api_key)}")
    print(f"Org ID:          {llm.org_id or '[not set]'}")
    print(f"Project ID:      {llm.project_id or '[not set]'}")

    ok = asyncio.run(_probe(settings))
    print("LLM API reachable" if ok else "LLM API NOT reachable")
    if not ok:
        sys.exit(1)


def cmd_cache(args):
    """Maintain the response cache."""
    from writer_ai.cache.store import CacheStore
    from writer_ai.config import default_cache_dir

    settings = _load(args)
    directory = settings.cache.directory or default_cache_dir()
    with CacheStore.open(directory, settings.cache) as store:
        if args.action == "cleanup":
            print(f"Removed {store.cleanup_expired()} expired entries")
        elif args.action == "clear":
            print(f"Removed {store.clear()} entries")
        else:
            stats = store.stats().model_dump()
            stats["directory"] = store.directory
            stats["enabled"] = store.enabled
            print(json.dumps(stats, indent=2))


def cmd_init_config(args):
    """Write the default config file."""
    path = Path(args.config) if args.config else default_config_path()
    if write_default_config(path, force=args.force):
        print(f"Created default config file at {path}")
    else:
        print(f"Config file already exists at {path} (use --force to overwrite)")


def main():
    parser = argparse.ArgumentParser(
        description="Writer AI - text improvement through LLM providers"
    )
    parser.add_argument("--config", default=None, help="Path to config.yaml")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # serve
    p_serve = subparsers.add_parser("serve", help="Start REST API server")
    p_serve.add_argument("--host", default=None)
    p_serve.add_argument("--port", type=int, default=None)

    # process
    p_process = subparsers.add_parser("process", help="Improve a single text")
    p_process.add_argument("--text", required=True, help="Input text")

    # check
    subparsers.add_parser("check", help="Test LLM API connectivity")

    # cache
    p_cache = subparsers.add_parser("cache", help="Response cache maintenance")
    p_cache.add_argument("action", choices=["cleanup", "clear", "stats"])

    # init-config
    p_init = subparsers.add_parser("init-config", help="Write default config file")
    p_init.add_argument("--force", action="store_true", help="Overwrite existing file")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    commands = {
        "serve": cmd_serve,
        "process": cmd_process,
        "check": cmd_check,
        "cache": cmd_cache,
        "init-config": cmd_init_config,
    }
    try:
        commands[args.command](args)
    except WriterAIException as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
