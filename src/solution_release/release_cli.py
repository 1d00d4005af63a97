#!/usr/bin/env python3
"""
CLI for solution release operations.

Usage:
    solution-release release --solution Contoso [--bump minor] [--prerelease rc1] [--dry-run]
    solution-release diff   solutions/Contoso /tmp/fresh-export [--json]
    solution-release bump   1.4.2 --kind minor
    solution-release mirror /tmp/fresh-export solutions/Contoso [--json]

Exit codes:
    0: Success (including a no-op release and an empty diff)
    1: Release error, or mirror left paths unapplied
    3: diff found differences
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from solution_release.collaborators.git_handoff import GitCommitter
from solution_release.config.config_loader import ReleaseConfig
from solution_release.core.exceptions import ReleaseError
from solution_release.core.logging import configure_logging
from solution_release.runner.release_runner import ReleaseRunner
from solution_release.snapshot.content_snapshot import build_snapshot
from solution_release.snapshot.differ import diff_snapshots
from solution_release.snapshot.mirror import TreeMirror
from solution_release.versioning.version import BumpKind, bump_version, format_version, parse_version

logger = logging.getLogger("solution_release.cli")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_DIFFERENCES = 3

BUMP_CHOICES = [k.value for k in BumpKind]


def setup_logging(verbose: bool = False, structured: bool = False) -> None:
    """Configure logging."""
    configure_logging(
        level=logging.DEBUG if verbose else logging.INFO,
        structured=structured,
    )


def _load_config(args) -> ReleaseConfig:
    return ReleaseConfig(Path(args.config) if args.config else None)


def cmd_release(args) -> int:
    """Export, diff, bump, mirror and commit one solution."""
    config = _load_config(args)
    run_config = config.to_run_config(
        solution_name=args.solution,
        managed=True if args.managed else None,
        working_dir=Path(args.working_dir) if args.working_dir else None,
        bump=args.bump,
        prerelease=args.prerelease,
        commit=False if args.no_commit else None,
        tag=False if args.no_tag else None,
        push=True if args.push else None,
        dry_run=args.dry_run,
    )

    committer = None
    if run_config.commit_enabled and not run_config.dry_run:
        committer = GitCommitter(
            repo_dir=run_config.repo_dir,
            push=run_config.push,
            remote=run_config.remote,
        )

    result = ReleaseRunner(run_config, committer=committer).run()

    print(result.summary())
    if args.json:
        print("\n" + json.dumps(result.to_dict(), indent=2))

    if not result.ok:
        logger.error(
            "Mirror failures:\n%s",
            "\n".join(f"  {p}: {e}" for p, e in sorted(result.mirror.failed.items())),
        )
        return EXIT_ERROR
    return EXIT_OK


def cmd_diff(args) -> int:
    """Compare two directory trees under the configured noise rules."""
    config = _load_config(args)
    noise = config.to_run_config(solution_name="diff").noise_filter
    workers = config.get("snapshot.workers", 1)

    old = build_snapshot(Path(args.old), noise, workers=workers)
    new = build_snapshot(Path(args.new), noise, workers=workers)
    diff = diff_snapshots(old, new)

    if args.json:
        print(json.dumps(diff.to_dict(), indent=2))
    else:
        for path in sorted(diff.added):
            print(f"A {path}")
        for path in sorted(diff.removed):
            print(f"D {path}")
        for path in sorted(diff.changed):
            print(f"M {path}")
        if diff.is_empty():
            print("No differences")

    return EXIT_OK if diff.is_empty() else EXIT_DIFFERENCES


def cmd_bump(args) -> int:
    """Print a bumped version."""
    version = bump_version(parse_version(args.version), BumpKind(args.kind), args.prerelease or "")
    print(format_version(version))
    return EXIT_OK


def cmd_mirror(args) -> int:
    """Mirror a source tree into a destination tree."""
    config = _load_config(args)
    preserve = config.to_run_config(solution_name="mirror").preserve_filter
    report = TreeMirror(preserve=preserve, workers=config.get("snapshot.workers", 1)).mirror(
        Path(args.source), Path(args.dest)
    )

    print(report.summary())
    if args.json:
        print("\n" + json.dumps(report.to_dict(), indent=2))
    return EXIT_OK if report.ok else EXIT_ERROR


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Solution release snapshot CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose/debug logging")
    parser.add_argument("--structured-logs", action="store_true", help="Emit JSON log lines")
    parser.add_argument("--config", help="Path to YAML config file")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Release command
    release_parser = subparsers.add_parser("release", help="Export and release a solution")
    release_parser.add_argument("--solution", help="Solution unique name")
    release_parser.add_argument("--managed", action="store_true", help="Export as managed")
    release_parser.add_argument("--working-dir", help="Working tree for the unpacked solution")
    release_parser.add_argument("--bump", choices=BUMP_CHOICES, help="Force a version bump")
    release_parser.add_argument("--prerelease", help="Prerelease label for the new version")
    release_parser.add_argument("--no-commit", action="store_true", help="Skip the git commit")
    release_parser.add_argument("--no-tag", action="store_true", help="Do not tag the release")
    release_parser.add_argument("--push", action="store_true", help="Push commit and tag")
    release_parser.add_argument("--dry-run", action="store_true", help="Report without changing the working tree")
    release_parser.add_argument("--json", action="store_true", help="Output result as JSON")

    # Diff command
    diff_parser = subparsers.add_parser("diff", help="Diff two trees by content")
    diff_parser.add_argument("old", help="Old tree")
    diff_parser.add_argument("new", help="New tree")
    diff_parser.add_argument("--json", action="store_true", help="Output diff as JSON")

    # Bump command
    bump_parser = subparsers.add_parser("bump", help="Bump a version string")
    bump_parser.add_argument("version", help="Version to bump")
    bump_parser.add_argument("--kind", required=True, choices=BUMP_CHOICES, help="Bump kind")
    bump_parser.add_argument("--prerelease", help="Prerelease label")

    # Mirror command
    mirror_parser = subparsers.add_parser("mirror", help="Mirror a tree into another")
    mirror_parser.add_argument("source", help="Source tree")
    mirror_parser.add_argument("dest", help="Destination tree")
    mirror_parser.add_argument("--json", action="store_true", help="Output report as JSON")

    return parser.parse_args(argv)


COMMANDS = {
    "release": cmd_release,
    "diff": cmd_diff,
    "bump": cmd_bump,
    "mirror": cmd_mirror,
}


def main(argv=None) -> int:
    """Main entry point."""
    load_dotenv()
    args = parse_args(argv)

    setup_logging(verbose=args.verbose, structured=args.structured_logs)

    handler = COMMANDS.get(args.command)
    if handler is None:
        print("No command specified. Use --help for usage.", file=sys.stderr)
        return EXIT_ERROR

    try:
        return handler(args)
    except ReleaseError as e:
        logger.error("%s", e)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
