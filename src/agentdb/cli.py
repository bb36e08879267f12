"""Minimal CLI for AgentDB using argparse."""

from __future__ import annotations

import argparse
import json
import sys
from typing import Dict, List, Optional, Sequence

from agentdb.config import Settings
from agentdb.logging_config import setup_logging


def _get_db(args: argparse.Namespace) -> "AgentDB":  # noqa: F821
    from agentdb import AgentDB

    settings = Settings.from_env()
    if args.path:
        settings.path = args.path
    if args.dimensions:
        settings.dimensions = args.dimensions
    return AgentDB.from_settings(settings)


def _parse_meta(items: Optional[List[str]]) -> Optional[Dict[str, str]]:
    if not items:
        return None
    meta: Dict[str, str] = {}
    for item in items:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise SystemExit(f"Error: metadata must be key=value, got {item!r}")
        meta[key] = value
    return meta


def _query_from_args(args: argparse.Namespace) -> dict:
    query = {"action": args.action}
    for name in ("selector", "value", "url"):
        val = getattr(args, name, None)
        if val is not None:
            query[name] = val
    return query


def cmd_record(args: argparse.Namespace) -> None:
    db = _get_db(args)
    pattern = _query_from_args(args)
    if args.success is not None:
        pattern["success"] = args.success
    meta = _parse_meta(args.meta)
    if meta:
        pattern["metadata"] = meta
    aid = db.store_action(pattern)
    db.save()
    db.close()
    print(aid)


def cmd_similar(args: argparse.Namespace) -> None:
    db = _get_db(args)
    results = db.find_similar(
        _query_from_args(args),
        k=args.limit,
        success_only=args.success_only,
        url_pattern=args.url_pattern,
    )
    db.close()
    if not results:
        print("No results.")
        return
    for r in results:
        p = r.pattern
        print(f"[{r.similarity:.3f}] #{r.id} {p.action}")
        if p.selector:
            print(f"  Selector: {p.selector}")
        if p.url:
            print(f"  URL:      {p.url}")
        if p.success is not None:
            print(f"  Success:  {'yes' if p.success else 'no'}")
        print()


def cmd_stats(args: argparse.Namespace) -> None:
    db = _get_db(args)
    stats = db.get_statistics()
    db.close()
    print(json.dumps(stats.to_dict(), indent=2))


def cmd_top(args: argparse.Namespace) -> None:
    db = _get_db(args)
    top = db.get_top_patterns(args.limit)
    db.close()
    if not top:
        print("No actions.")
        return
    print(f"{'Pattern':<60} {'Count':>6} {'Success':>8}")
    print("-" * 76)
    for s in top:
        print(f"{s.pattern[:60]:<60} {s.count:>6} {s.success_rate:>8.0%}")


def cmd_metadata(args: argparse.Namespace) -> None:
    db = _get_db(args)
    patterns = db.query_by_metadata(_parse_meta(args.meta) or {})
    db.close()
    print(json.dumps([p.to_dict() for p in patterns], indent=2, ensure_ascii=False))


def cmd_export(args: argparse.Namespace) -> None:
    db = _get_db(args)
    document = db.export_training_data(path=args.output)
    count = len(db)
    db.close()
    if args.output:
        print(f"Exported {count} actions to {args.output}")
    else:
        print(document)


def cmd_import(args: argparse.Namespace) -> None:
    db = _get_db(args)
    count = db.import_training_data(path=args.file)
    db.save()
    db.close()
    print(f"Imported {count} actions from {args.file}")


def _add_pattern_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--action", required=True)
    p.add_argument("--selector", default=None)
    p.add_argument("--value", default=None)
    p.add_argument("--url", default=None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agentdb",
        description="AgentDB: browser-automation pattern memory CLI",
    )
    parser.add_argument("--path", default=None, help="Store directory (or AGENTDB_PATH)")
    parser.add_argument("--dimensions", type=int, default=None, help="Vector dimension")

    sub = parser.add_subparsers(dest="command")

    # record
    p = sub.add_parser("record", help="Record an action")
    _add_pattern_args(p)
    outcome = p.add_mutually_exclusive_group()
    outcome.add_argument("--success", dest="success", action="store_const", const=True, default=None)
    outcome.add_argument("--failure", dest="success", action="store_const", const=False)
    p.add_argument("--meta", action="append", default=None, help="key=value, repeatable")

    # similar
    p = sub.add_parser("similar", help="Find similar actions")
    _add_pattern_args(p)
    p.add_argument("--limit", type=int, default=5)
    p.add_argument("--success-only", action="store_true")
    p.add_argument("--url-pattern", default=None)

    # stats
    sub.add_parser("stats", help="Show statistics")

    # top
    p = sub.add_parser("top", help="Most frequent action/selector pairs")
    p.add_argument("--limit", type=int, default=10)

    # metadata
    p = sub.add_parser("metadata", help="Find actions by metadata")
    p.add_argument("meta", nargs="+", help="key=value filters")

    # export
    p = sub.add_parser("export", help="Export training data to JSON")
    p.add_argument("-o", "--output", default=None, help="Output file path")

    # import
    p = sub.add_parser("import", help="Import training data from JSON")
    p.add_argument("file", help="JSON file to import")

    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    setup_logging()

    handlers = {
        "record": cmd_record,
        "similar": cmd_similar,
        "stats": cmd_stats,
        "top": cmd_top,
        "metadata": cmd_metadata,
        "export": cmd_export,
        "import": cmd_import,
    }
    handlers[args.command](args)


if __name__ == "__main__":
    main()
