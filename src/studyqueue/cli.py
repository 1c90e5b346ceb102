"""Command line interface for the study-note queue."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable, Sequence, TextIO

from .config import ArtifactTarget, NoteMode, PipelineConfig, ProviderConfig, ProviderKind, RetryPolicy, StudyQueueConfig
from .io import load_syllabus
from .queue import (
    HttpArtifactSync,
    JsonQueuePersistence,
    LocalArtifactStore,
    MockNoteGenerator,
    NoteGenerator,
    QueueLibrary,
    QueueScheduler,
    WorkItem,
    build_work_items,
    parse_topics,
)

__all__ = ["main", "build_parser"]

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="studyqueue",
        description="Queue syllabus topics and turn them into AI-generated study notes.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        allow_abbrev=False,
    )
    parser.add_argument(
        "--data-root",
        default=None,
        help="Directory holding the queue file, saved queues and notes (default: $STUDYQUEUE_DATA_ROOT or .studyqueue).",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    enqueue = subparsers.add_parser("enqueue", help="Parse a syllabus file into the queue.")
    enqueue.add_argument("syllabus", help="Syllabus file (.md, .txt, .json or .pdf).")
    enqueue.add_argument(
        "--append",
        action="store_true",
        help="Append to the existing queue instead of replacing it.",
    )

    subparsers.add_parser("status", help="Show every queued topic and its state.")

    approve = subparsers.add_parser("approve", help="Approve a drafted outline as is.")
    approve.add_argument("item_id")

    edit = subparsers.add_parser("edit", help="Replace an outline and approve it.")
    edit.add_argument("item_id")
    edit.add_argument("--structure-file", required=True, help="File containing the edited outline.")

    run = subparsers.add_parser(
        "run",
        help="Process the queue until nothing is actionable.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        allow_abbrev=False,
    )
    _register_run_arguments(run)

    save = subparsers.add_parser("save-queue", help="Store the current queue in the saved-queue library.")
    save.add_argument("name")

    subparsers.add_parser("list-queues", help="List saved queues.")

    load = subparsers.add_parser("load-queue", help="Replace the current queue with a saved one.")
    load.add_argument("queue_id")

    return parser


def _register_run_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--provider",
        default="mock",
        choices=[kind.value for kind in ProviderKind],
        help="LLM provider for note content.",
    )
    parser.add_argument("--model", default="gpt-4o-mini", help="Model used for note content.")
    parser.add_argument(
        "--base-url",
        dest="base_url",
        default=None,
        help="Optional base URL for OpenAI-compatible providers.",
    )
    parser.add_argument(
        "--api-key-env",
        dest="api_key_env",
        default="STUDYQUEUE_API_KEY",
        help="Environment variable containing the provider API key.",
    )
    parser.add_argument("--temperature", type=float, default=0.4, help="Sampling temperature.")
    parser.add_argument("--max-tokens", type=int, default=None, help="Maximum tokens per response.")
    parser.add_argument(
        "--structure-provider",
        default=None,
        choices=[kind.value for kind in ProviderKind],
        help="Separate provider for outline drafting.",
    )
    parser.add_argument("--structure-model", default=None, help="Model used for outline drafting.")
    parser.add_argument(
        "--auto-approve",
        action="store_true",
        help="Skip the review pause and go straight from outline to note.",
    )
    parser.add_argument(
        "--mode",
        default=NoteMode.GENERAL.value,
        choices=[mode.value for mode in NoteMode],
        help="Note style.",
    )
    parser.add_argument("--prompt-file", default=None, help="Custom system prompt for note content.")
    parser.add_argument("--structure-prompt-file", default=None, help="Custom system prompt for outlines.")
    parser.add_argument(
        "--resume-from-structure",
        action="store_true",
        help="Retry failed items from their cached outline instead of redrafting it.",
    )
    parser.add_argument("--remote-url", default=None, help="Base URL of a REST endpoint to mirror notes to.")
    parser.add_argument("--remote-table", default="notes", help="Table name on the remote endpoint.")
    parser.add_argument("--seed", type=int, default=None, help="Seed for the mock provider.")


def _read_optional(path: str | None) -> str | None:
    if not path:
        return None
    return Path(path).expanduser().read_text(encoding="utf-8")


def _build_pipeline_config(args: argparse.Namespace) -> PipelineConfig:
    provider = ProviderConfig(
        provider=ProviderKind(args.provider),
        model=args.model,
        base_url=args.base_url,
        api_key_env=args.api_key_env,
        temperature=args.temperature,
        max_tokens=args.max_tokens,
    )
    structure_provider = None
    if args.structure_provider or args.structure_model:
        structure_provider = ProviderConfig(
            provider=ProviderKind(args.structure_provider or args.provider),
            model=args.structure_model or args.model,
            api_key_env=args.api_key_env,
            temperature=min(args.temperature, 0.3),
        )
    return PipelineConfig(
        provider=provider,
        structure_provider=structure_provider,
        auto_approve=args.auto_approve,
        mode=NoteMode(args.mode),
        custom_prompt=_read_optional(args.prompt_file),
        custom_structure_prompt=_read_optional(args.structure_prompt_file),
        artifact_store=ArtifactTarget.REMOTE if args.remote_url else ArtifactTarget.LOCAL,
        resume_from_structure=args.resume_from_structure,
    )


def _build_remote(args: argparse.Namespace) -> HttpArtifactSync | None:
    if not getattr(args, "remote_url", None):
        return None
    return HttpArtifactSync(args.remote_url, table=args.remote_table)


def _build_scheduler(
    config: StudyQueueConfig,
    args: argparse.Namespace,
    remote: HttpArtifactSync | None = None,
) -> QueueScheduler:
    generator = NoteGenerator(mock=MockNoteGenerator(seed=getattr(args, "seed", None)))
    scheduler = QueueScheduler(
        generator,
        generator,
        LocalArtifactStore(config.artifact_dir, remote=remote),
        persistence=JsonQueuePersistence(config.queue_file),
        policy=config.retry,
    )
    scheduler.restore()
    return scheduler


def _print_queue(items: Sequence[WorkItem], label: str, stream: TextIO) -> None:
    print(f"[{label}] {len(items)} topic(s)", file=stream)
    for item in items:
        line = f"{item.id}\t{item.status.value:<18}\t{item.topic}"
        if item.retry_count:
            line += f"\tretries={item.retry_count}"
        if item.error_msg:
            line += f"\t{item.error_msg}"
        print(line, file=stream)


def _cmd_enqueue(config: StudyQueueConfig, args: argparse.Namespace) -> int:
    syllabus = load_syllabus(args.syllabus)
    items = build_work_items(parse_topics(syllabus.content))
    scheduler = _build_scheduler(config, args)
    existing = scheduler.items if args.append else []
    scheduler.set_queue([*existing, *items])
    print(f"Queued {len(items)} topic(s) from {syllabus.source}")
    return 0


def _cmd_status(config: StudyQueueConfig, args: argparse.Namespace) -> int:
    scheduler = _build_scheduler(config, args)
    _print_queue(scheduler.items, scheduler.status_label, sys.stdout)
    return 0


def _cmd_approve(config: StudyQueueConfig, args: argparse.Namespace) -> int:
    scheduler = _build_scheduler(config, args)
    if not scheduler.approve_item(args.item_id):
        raise ValueError(f"Unknown item id: {args.item_id}")
    print(f"Approved {args.item_id}")
    return 0


def _cmd_edit(config: StudyQueueConfig, args: argparse.Namespace) -> int:
    structure = Path(args.structure_file).expanduser().read_text(encoding="utf-8")
    scheduler = _build_scheduler(config, args)
    if not scheduler.update_item_structure(args.item_id, structure):
        raise ValueError(f"Unknown item id: {args.item_id}")
    print(f"Updated outline for {args.item_id}")
    return 0


def _cmd_run(config: StudyQueueConfig, args: argparse.Namespace) -> int:
    pipeline = _build_pipeline_config(args)
    remote = _build_remote(args)
    try:
        scheduler = _build_scheduler(config, args, remote)
        scheduler.subscribe(
            lambda items, processing, label: logger.debug("Queue update: %s (%d items)", label, len(items))
        )
        scheduler.start_processing(pipeline)
    finally:
        if remote is not None:
            remote.close()
    _print_queue(scheduler.items, scheduler.status_label, sys.stdout)
    if scheduler.circuit_open:
        print("Error: circuit breaker tripped; the provider looks unavailable.", file=sys.stderr)
        return 1
    return 0


def _cmd_save_queue(config: StudyQueueConfig, args: argparse.Namespace) -> int:
    scheduler = _build_scheduler(config, args)
    record = QueueLibrary(config.library_file).save_queue(args.name, scheduler.items)
    print(f"Saved queue {record.id} ({len(record.items)} topic(s))")
    return 0


def _cmd_list_queues(config: StudyQueueConfig, args: argparse.Namespace) -> int:
    for record in QueueLibrary(config.library_file).list_queues():
        print(f"{record.id}\t{record.saved_at}\t{len(record.items)}\t{record.name}")
    return 0


def _cmd_load_queue(config: StudyQueueConfig, args: argparse.Namespace) -> int:
    record = QueueLibrary(config.library_file).get_queue(args.queue_id)
    if record is None:
        raise ValueError(f"Unknown saved queue: {args.queue_id}")
    scheduler = _build_scheduler(config, args)
    scheduler.set_queue([entry.to_item() for entry in record.items])
    print(f"Loaded queue '{record.name}' ({len(record.items)} topic(s))")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = StudyQueueConfig(retry=RetryPolicy())
    if args.data_root:
        config = config.with_data_root(args.data_root)
    config.ensure_directories()

    command_map: dict[str, Callable[[StudyQueueConfig, argparse.Namespace], int]] = {
        "enqueue": _cmd_enqueue,
        "status": _cmd_status,
        "approve": _cmd_approve,
        "edit": _cmd_edit,
        "run": _cmd_run,
        "save-queue": _cmd_save_queue,
        "list-queues": _cmd_list_queues,
        "load-queue": _cmd_load_queue,
    }

    runner = command_map.get(args.command)
    if runner is None:  # pragma: no cover - argparse enforces the choice
        parser.print_help()
        return 1

    try:
        return runner(config, args)
    except (FileNotFoundError, ValueError, RuntimeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
