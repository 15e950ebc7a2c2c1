"""Entry point: python -m changelog

Usage:
    python -m changelog diff old.yaml new.yaml     # Diff two extracted payloads
    python -m changelog diff old.json new.json --current 1.2.0
    python -m changelog group listing.yaml         # Group a component listing
    python -m changelog library FILE_KEY           # Group a published library (needs CHANGELOG_FIGMA_TOKEN)
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

import yaml

from changelog.classifier import classify_diff, next_version
from changelog.differ import diff_snapshots
from changelog.grouping import group_components
from changelog.snapshot import load_snapshot


def run_diff(old_path: str, new_path: str, current: str | None, as_json: bool) -> int:
    previous = load_snapshot(old_path)
    snapshot = load_snapshot(new_path)
    diff = diff_snapshots(previous, snapshot)
    classified = classify_diff(diff)

    if as_json:
        payload = {
            **diff.to_dict(),
            "bump": diff.bump.value if diff.bump else None,
            "summary": classified.summary,
            "isBreaking": classified.is_breaking,
        }
        if current and diff.bump:
            payload["nextVersion"] = next_version(current, diff.bump)
        print(json.dumps(payload, indent=2))
        return 0

    print(f"Component: {snapshot.component_key or '(unknown)'}")
    print(f"  Summary:  {classified.summary}")
    print(f"  Bump:     {diff.bump.value if diff.bump else 'none'}")
    print(f"  Breaking: {classified.is_breaking}")
    if current and diff.bump:
        print(f"  Version:  {current} -> {next_version(current, diff.bump)}")
    for change in classified.changed_fields:
        print(f"    {change['change']:<8} {change['kind']:<9} {change['key']}")
    return 0


def _print_groups(components: list) -> None:
    groups = group_components(components)
    print(f"{len(groups)} group(s) from {len(components)} component(s)")
    for group in groups:
        label = "standalone" if group.standalone else f"{len(group.variants)} variant(s)"
        print(f"  {group.base_name:<40} {label}")


def run_group(path: str) -> int:
    with open(path) as f:
        listing = yaml.safe_load(f)
    if isinstance(listing, dict):
        listing = listing.get("components", [])
    if not isinstance(listing, list):
        print(f"ERROR: {path} does not contain a component list")
        return 1
    _print_groups(listing)
    return 0


async def run_library(file_key: str) -> int:
    from changelog.library_client import LibraryClient

    async with LibraryClient() as client:
        info = await client.get_library_info(file_key)
        print(f"Library: {info['name']} ({info['componentCount']} components)")
        _print_groups(await client.get_file_components(file_key))
    return 0


def cli():
    parser = argparse.ArgumentParser(description="Component changelog tools")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output")
    sub = parser.add_subparsers(dest="command", required=True)

    diff_parser = sub.add_parser("diff", help="Diff two extracted component payloads")
    diff_parser.add_argument("old", help="Previous payload (YAML or JSON)")
    diff_parser.add_argument("new", help="Current payload (YAML or JSON)")
    diff_parser.add_argument("--current", help="Current version, to print the next one")
    diff_parser.add_argument("--json", action="store_true", help="Print the diff as JSON")

    group_parser = sub.add_parser("group", help="Group a flat component listing")
    group_parser.add_argument("listing", help="YAML or JSON list of components")

    library_parser = sub.add_parser("library", help="Group the components of a published library")
    library_parser.add_argument("file_key", help="Library file key")

    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    if args.command == "diff":
        code = run_diff(args.old, args.new, args.current, args.json)
    elif args.command == "group":
        code = run_group(args.listing)
    else:
        code = asyncio.run(run_library(args.file_key))
    sys.exit(code)


if __name__ == "__main__":
    cli()
