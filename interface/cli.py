#!/usr/bin/env python3
"""Planner sync CLI: feeds records to the batch runner and prints JSON."""

import argparse
import logging
from typing import Any, List, Mapping, Optional

import planner_sync
from config import set_user_token
from core.errors import PlannerSyncError, ValidationError
from core.outcome import Err, flatten
from interface.cli_io import load_json_source, structured_error, structured_response


def _run_records(command: str, records: List[Mapping[str, Any]], continue_on_fail: Optional[bool]) -> int:
    sync = planner_sync.get_planner_sync()
    try:
        outcomes = sync.run(records, continue_on_fail=continue_on_fail)
    except PlannerSyncError as exc:
        payload = {"errorType": type(exc).__name__}
        status = getattr(exc, "status", None)
        if status is not None:
            payload["status"] = status
        return structured_error(command, str(exc), payload=payload)
    failed = sum(1 for outcome in outcomes if isinstance(outcome, Err))
    return structured_response(
        command,
        status="PARTIAL" if failed else "OK",
        message=f"{len(outcomes) - failed} ok, {failed} failed",
        payload={"results": flatten(outcomes), "rate": sync.rate_info()},
    )


def cmd_auth(args: argparse.Namespace) -> int:
    """Set or clear the Graph access token."""
    if args.unset:
        set_user_token("")
        planner_sync.reload_planner_sync()
        return structured_response("auth", message="Token cleared", payload={"token": None})
    if not args.token:
        return structured_error("auth", "Provide --token or --unset")
    set_user_token(args.token)
    planner_sync.reload_planner_sync()
    return structured_response("auth", message="Token saved", payload={"token": "***"})


def cmd_run(args: argparse.Namespace) -> int:
    """Run a single resource/operation record."""
    try:
        params = load_json_source(args.params, "--params", default={})
    except ValidationError as exc:
        return structured_error("run", str(exc))
    if not isinstance(params, dict):
        return structured_error("run", "--params must be a JSON object")
    record = {"resource": args.resource, "operation": args.operation, "parameters": params}
    return _run_records("run", [record], args.continue_on_fail)


def cmd_batch(args: argparse.Namespace) -> int:
    """Run a JSON list of records."""
    try:
        records = load_json_source(args.input, "--input", default=[])
    except ValidationError as exc:
        return structured_error("batch", str(exc))
    if not isinstance(records, list) or not all(isinstance(item, dict) for item in records):
        return structured_error("batch", "--input must be a JSON array of records")
    return _run_records("batch", records, args.continue_on_fail)


def cmd_lookup(args: argparse.Namespace) -> int:
    """List buckets, tasks or groups as name/value pairs."""
    sync = planner_sync.get_planner_sync()
    try:
        options = sync.lookup(args.kind, plan_id=args.plan_id, bucket_id=args.bucket_id)
    except PlannerSyncError as exc:
        return structured_error("lookup", str(exc), payload={"errorType": type(exc).__name__})
    return structured_response(
        "lookup",
        message=f"{len(options)} {args.kind}",
        payload={"options": options, "rate": sync.rate_info()},
    )


def cmd_config(args: argparse.Namespace) -> int:
    """Update project-level settings."""
    if args.continue_on_fail is not None:
        planner_sync.update_continue_on_fail(args.continue_on_fail == "on")
    if args.base_url is not None:
        planner_sync.update_graph_base_url(args.base_url or None)
    config = planner_sync.get_planner_sync().config
    return structured_response(
        "config",
        message="Settings updated",
        payload={"base_url": config.base_url, "continue_on_fail": config.continue_on_fail},
    )


def _add_policy_flags(parser: argparse.ArgumentParser) -> None:
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--continue-on-fail", dest="continue_on_fail", action="store_true", default=None)
    group.add_argument("--strict", dest="continue_on_fail", action="store_false")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="planner", description="Microsoft Planner sync")
    parser.add_argument("--verbose", "-v", action="store_true", help="debug logging to stderr")
    sub = parser.add_subparsers(dest="command", required=True)

    ap = sub.add_parser("auth", help="Store or clear the Graph token")
    ap.add_argument("--token")
    ap.add_argument("--unset", action="store_true")
    ap.set_defaults(func=cmd_auth)

    rp = sub.add_parser("run", help="Run one record")
    rp.add_argument("resource", choices=["task", "plan", "bucket", "comment"])
    rp.add_argument("operation")
    rp.add_argument("--params", default="", help="JSON object, @file or - for STDIN")
    _add_policy_flags(rp)
    rp.set_defaults(func=cmd_run)

    bp = sub.add_parser("batch", help="Run a list of records")
    bp.add_argument("--input", required=True, help="JSON array, @file or - for STDIN")
    _add_policy_flags(bp)
    bp.set_defaults(func=cmd_batch)

    lp = sub.add_parser("lookup", help="List buckets, tasks or groups to pick ids from")
    lp.add_argument("kind", choices=["buckets", "tasks", "groups"])
    lp.add_argument("--plan-id")
    lp.add_argument("--bucket-id")
    lp.set_defaults(func=cmd_lookup)

    cp = sub.add_parser("config", help="Update project settings")
    cp.add_argument("--continue-on-fail", choices=["on", "off"])
    cp.add_argument("--base-url")
    cp.set_defaults(func=cmd_config)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    return args.func(args)
