"""CLI for voice_devops with observability."""
from __future__ import annotations

import argparse
import json
import sys
import time
from pathlib import Path
from typing import List, Optional

import health
import pattern_registry
from command_processor import build_default_processor
from config import config
from logging_utils import logger
from models import CommandRequest, Role


def load_requests(path: Path) -> List[CommandRequest]:
    """Load a batch of commands from a JSON file."""
    with path.open("r", encoding="utf-8") as handle:
        raw_requests = json.load(handle)

    requests: List[CommandRequest] = []
    for index, entry in enumerate(raw_requests, start=1):
        role = entry.get("role")
        requests.append(
            CommandRequest(
                id=str(entry.get("id", f"cmd_{index:03d}")),
                username=str(entry.get("username", "")).strip(),
                command=str(entry.get("command", "")),
                role=Role(str(role).upper()) if role else None,
            )
        )
    return requests


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="voice_devops CLI")
    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument("--command", help="Command text to process")
    mode.add_argument("--input", help="Path to a JSON batch of commands")
    mode.add_argument("--list-commands", choices=[r.value for r in Role], help="Show a role's command catalog")
    mode.add_argument("--health", action="store_true", help="Run health checks")
    parser.add_argument("--user", help="Caller username (with --command)")
    parser.add_argument("--role", choices=[r.value for r in Role], help="Caller role; must match the user directory")
    parser.add_argument("--full", action="store_true", help="Include the LLM connectivity check")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    config.validate()

    if args.health:
        status = health.get_health_status(include_llm_check=args.full)
        print(json.dumps(status.to_dict(), indent=2))
        return 0 if status.healthy else 1

    if args.list_commands:
        role = Role(args.list_commands)
        print(json.dumps({"role": role.value, "commands": pattern_registry.catalog_summary(role)}, indent=2))
        return 0

    processor = build_default_processor()
    try:
        if args.command:
            if not args.user:
                parser.error("--user is required with --command")
            role = Role(args.role) if args.role else None
            result = processor.process_command(args.command, args.user, role)
            print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
            return 0 if result.success else 1

        start = time.time()
        requests = load_requests(Path(args.input).resolve())
        results = processor.process_batch(requests)
        total_latency_ms = int((time.time() - start) * 1000)
        logger.info("Completed batch", extra={"extra": {"total_latency_ms": total_latency_ms, "count": len(results)}})
        print(json.dumps(results, indent=2, ensure_ascii=False))
        return 0
    finally:
        processor.build_system.supervisor.shutdown(wait=False)


if __name__ == "__main__":
    sys.exit(main())
