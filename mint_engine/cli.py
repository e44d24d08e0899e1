"""mint-engine CLI entrypoints."""

from __future__ import annotations

import argparse
import json
import time
from collections import Counter
from typing import Any

from .chain.cursor import BlockCursor
from .config import MintSettings
from .context import PipelineContext
from .errors import ChainError, ConfigurationError, MintEngineError, ValidationError
from .traits.engine import TIER_ORDER, TraitEngine
from .utils import load_dotenv


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mint-engine", description="AI NFT mint finalization pipeline")
    sub = parser.add_subparsers(dest="command")

    run = sub.add_parser("run", help="Run one scan-and-finalize pass")
    run.add_argument("--provider", help="Force a single image provider (default: auto fallback)")

    watch = sub.add_parser("watch", help="Run passes repeatedly")
    watch.add_argument("--interval", type=float, default=60.0, help="Seconds between passes")
    watch.add_argument("--max-passes", dest="max_passes", type=int, default=0)
    watch.add_argument("--provider")

    redrive = sub.add_parser("redrive", help="Re-run finalization for one token")
    redrive.add_argument("--token", type=int, required=True)
    redrive.add_argument("--breed", required=True)
    redrive.add_argument("--buyer")
    redrive.add_argument("--provider")
    redrive.add_argument("--force", action="store_true", help="Regenerate an already finalized token")

    status = sub.add_parser("status", help="Show task status")
    status.add_argument("--task", help="Task id")
    status.add_argument("--token", type=int, help="List tasks for a token")
    status.add_argument("--minimal", action="store_true")
    status.add_argument("--no-history", dest="history", action="store_false")

    reset = sub.add_parser("reset-block", help="Administrative checkpoint reset")
    reset.add_argument("block", type=int)
    reset.add_argument("--clear-processed", dest="clear_processed", action="store_true")

    traits = sub.add_parser("traits", help="Preview trait assignment for a breed")
    traits.add_argument("--breed", required=True)
    traits.add_argument("--samples", type=int, default=1)

    return parser


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _handle_run(args: argparse.Namespace, context: PipelineContext) -> int:
    orchestrator = context.build_orchestrator(provider=args.provider)
    summary = orchestrator.run_pass()
    _print_json(summary)
    return 0 if summary["tasksFailed"] == 0 else 2


def _handle_watch(args: argparse.Namespace, context: PipelineContext) -> int:
    orchestrator = context.build_orchestrator(provider=args.provider)
    passes = 0
    while True:
        try:
            summary = orchestrator.run_pass()
            print(
                f"[pass] blocks {summary['fromBlock']}-{summary['toBlock']}: "
                f"{summary['tasksCompleted']} completed, {summary['tasksFailed']} failed, "
                f"{summary['skipped']} skipped"
            )
        except ChainError as exc:
            print(f"[pass] aborted: {exc}")
        context.tasks.flush()
        passes += 1
        if args.max_passes and passes >= args.max_passes:
            return 0
        time.sleep(max(1.0, args.interval))


def _handle_redrive(args: argparse.Namespace, context: PipelineContext) -> int:
    orchestrator = context.build_orchestrator()
    outcome = orchestrator.redrive(
        args.token,
        args.breed,
        buyer=args.buyer,
        provider=args.provider,
        force=args.force,
    )
    _print_json(context.tasks.get_status(outcome.task_id))
    return 0 if outcome.ok else 2


def _handle_status(args: argparse.Namespace, context: PipelineContext) -> int:
    if args.task:
        _print_json(context.tasks.get_status(args.task, minimal=args.minimal, include_history=args.history))
        return 0
    if args.token is not None:
        _print_json(context.tasks.find_by_token(args.token))
        return 0
    _print_json(context.tasks.metrics())
    return 0


def _handle_reset(args: argparse.Namespace, context: PipelineContext) -> int:
    cursor = BlockCursor(context.build_chain(), context.checkpoints, events=context.events)
    checkpoint = cursor.reset(args.block, clear_processed=args.clear_processed)
    _print_json(checkpoint.to_payload())
    return 0


def _handle_traits(args: argparse.Namespace, context: PipelineContext) -> int:
    engine = TraitEngine(events=context.events)
    if args.samples <= 1:
        assignment = engine.assign_traits(args.breed)
        _print_json(
            {
                "breed": assignment.breed,
                "attributes": list(assignment.attributes),
                "rarity": {"score": assignment.rarity_score, "tier": assignment.tier},
                "synergies": list(assignment.breakdown.synergies),
                "description": assignment.description,
            }
        )
        return 0
    tiers = Counter(engine.assign_traits(args.breed).tier for _ in range(args.samples))
    _print_json({tier: tiers.get(tier, 0) for tier in TIER_ORDER})
    return 0


_HANDLERS = {
    "run": _handle_run,
    "watch": _handle_watch,
    "redrive": _handle_redrive,
    "status": _handle_status,
    "reset-block": _handle_reset,
    "traits": _handle_traits,
}


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    parser = _build_parser()
    args = parser.parse_args(argv)
    handler = _HANDLERS.get(args.command or "")
    if handler is None:
        parser.print_help()
        raise SystemExit(1)
    with PipelineContext.open(MintSettings.from_env()) as context:
        try:
            code = handler(args, context)
        except (ConfigurationError, ValidationError) as exc:
            print(f"error: {exc}")
            code = 1
        except MintEngineError as exc:
            print(f"failed: {exc}")
            code = 2
    raise SystemExit(code)


if __name__ == "__main__":
    main()
