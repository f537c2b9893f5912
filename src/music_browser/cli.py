from __future__ import annotations

import argparse
import locale
import logging
import os
import sys
from collections import deque
from pathlib import Path
from typing import Callable, Optional, Sequence

from .config import BrowserConfig, load_config
from .controller import ExpansionController
from .errors import BrowserError
from .logging_config import setup_logging
from .models import NodeView, TreeSnapshot
from .session import BrowserSession


logger = logging.getLogger(__name__)


def _make_progress_printer(stage: str) -> Callable[[int, int], None]:
    is_tty = sys.stdout.isatty()
    last_percent = -1

    def _report(current: int, total: int) -> None:
        nonlocal last_percent
        percent = 100 if total <= 0 else int((current / total) * 100)
        percent = max(0, min(100, percent))

        if is_tty:
            if percent == last_percent and current < total:
                return
            end = "\n" if current >= total else ""
            print(f"\r[{stage}] {percent:3d}% ({current}/{total})", end=end, flush=True)
            last_percent = percent
            return

        should_print = (
            last_percent < 0
            or current >= total
            or percent >= last_percent + 10
        )
        if should_print:
            print(f"[{stage}] {percent:3d}% ({current}/{total})")
            last_percent = percent

    return _report


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="music-browser",
        description="Browse a music folder lazily and show key/BPM tags of its audio files.",
    )
    parser.add_argument(
        "root",
        type=Path,
        nargs="?",
        help="Directory to browse (omit to reopen the directory saved in --bookmark-file)",
    )
    parser.add_argument(
        "--depth",
        type=int,
        default=1,
        help="How many directory levels to expand below the root",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Maximum number of children materialized per directory",
    )
    parser.add_argument(
        "--show-hidden",
        action="store_true",
        default=None,
        help="Include hidden files and folders",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of concurrent tag readers",
    )
    parser.add_argument(
        "--bookmark-file",
        type=Path,
        default=None,
        help="Bookmark to reopen when no root is given; written after selecting a root",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="JSON file with browser settings (command-line flags take precedence)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log expansion and tag-reading details",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write a debug log to this file",
    )
    parser.add_argument(
        "--tag-timeout",
        type=float,
        default=60.0,
        help="Seconds to wait for key/BPM reads before printing the tree",
    )
    return parser


def _printable(text: str) -> str:
    # Undecodable file names come back from os.scandir with surrogate escapes.
    encoding = sys.stdout.encoding or "utf-8"
    text = os.fsencode(text).decode(sys.getfilesystemencoding(), errors="replace")
    return text.encode(encoding, errors="replace").decode(encoding)


def _describe(node: NodeView) -> str:
    if node.is_directory:
        return f"{node.name}/"
    details = [f"{node.size / (1024 * 1024):.2f} MB"]
    if node.key:
        details.append(f"key {node.key}")
    if node.bpm:
        details.append(f"{node.bpm} BPM")
    return f"{node.name}  [{', '.join(details)}]"


def render_tree(snapshot: TreeSnapshot) -> list[str]:
    return [f"{'  ' * depth}{_describe(node)}" for depth, node in snapshot.walk()]


def expand_to_depth(session: BrowserSession, root_id: int, depth: int) -> list[str]:
    warnings: list[str] = []
    queue = deque([(root_id, 0)])
    while queue:
        node_id, level = queue.popleft()
        if level >= depth:
            continue
        children = session.on_expand_requested(node_id)
        if session.last_error:
            warnings.append(session.last_error)
            continue
        queue.extend((child.id, level + 1) for child in children if child.is_directory)
    return warnings


def _build_config(args: argparse.Namespace) -> BrowserConfig:
    config = load_config(args.config.expanduser()) if args.config else BrowserConfig()
    return config.with_overrides(
        child_limit=args.limit,
        show_hidden=args.show_hidden,
        max_workers=args.workers,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging("DEBUG" if args.verbose else "WARNING", args.log_file)
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error as exc:
        logger.warning("using default collation: %s", exc)

    if args.root is None and args.bookmark_file is None:
        parser.error("a root directory or --bookmark-file is required")
    if args.depth < 0:
        parser.error("--depth must be >= 0")
    if args.tag_timeout <= 0:
        parser.error("--tag-timeout must be > 0")

    try:
        config = _build_config(args)
    except (OSError, ValueError) as exc:
        raise SystemExit(f"Invalid configuration: {exc}")

    controller = ExpansionController(config=config, progress_callback=_make_progress_printer("enrich"))
    session = BrowserSession(controller)
    finished = True
    try:
        try:
            if args.root is not None:
                root_id = session.on_root_selected(args.root)
            else:
                root_id = session.restore(args.bookmark_file.expanduser().read_bytes())
        except (BrowserError, OSError) as exc:
            raise SystemExit(f"Cannot open directory: {exc}")

        print(_printable(f"[start] browsing: {session.root_path}"))
        warnings = expand_to_depth(session, root_id, args.depth)
        finished = controller.wait_for_enrichment(args.tag_timeout)
        if not finished:
            warnings.append(
                f"tag reading timed out after {args.tag_timeout:g}s; "
                f"{controller.pending_enrichments} files shown without key/BPM"
            )

        for line in render_tree(session.snapshot()):
            print(_printable(line))
        for warning in warnings:
            print(_printable(f"[warn] {warning}"))

        if args.bookmark_file is not None and session.last_bookmark is not None:
            bookmark_file = args.bookmark_file.expanduser()
            bookmark_file.parent.mkdir(parents=True, exist_ok=True)
            bookmark_file.write_bytes(session.last_bookmark)
            print(_printable(f"[write] bookmark: {bookmark_file}"))
    finally:
        session.close(wait=finished)
    return 0


if __name__ == "__main__":
    sys.exit(main())
