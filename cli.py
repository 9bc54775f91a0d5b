"""
CLI entry point for the contribution engine. Wires the pipeline: export -> classify -> ledger -> scores
"""

import argparse
import json
import logging
import sys

from actions.util import resources_from_export, project_from_export
from engine import ContributionEngine
from errors import ConfigurationError
from logs import attach_buffer
from providers import providers_from_export
from settings import load_config
from storage.ledger import ContributionLedger


def _print_json(obj):
    print(json.dumps(obj, indent=2, default=str))


def _load_json_file(path: str, description: str):
    """Load a JSON file and return the parsed object or None on failure."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        print(f"Failed to read {description} {path}: {e}")
        return None


def _confirm(prompt: str, force: bool) -> bool:
    if force:
        return True
    answer = input(prompt + " [y/N]: ")
    return answer.strip().lower() in ("y", "yes")


def _cleanup_project(engine: ContributionEngine, path: str, force: bool) -> bool:
    raw = _load_json_file(path, 'project file')
    if raw is None:
        return False
    project = project_from_export(raw)
    if not _confirm(f"Remove all actions for project '{project.name}' from {engine.ledger.path}?", force):
        print("Aborted cleanup.")
        return False
    removed = engine.cleanup(project)
    print(f"Removed {removed} action row(s) for project {project.name}")
    return True


def _remove_all(engine: ContributionEngine, force: bool) -> bool:
    if not _confirm(f"Remove every action and weight from {engine.ledger.path}? This cannot be undone.", force):
        print("Aborted removal.")
        return False
    engine.remove()
    print(f"Cleared ledger at {engine.ledger.path}")
    return True


def _process_events(engine: ContributionEngine, raw, workers: int):
    resources = resources_from_export(raw)
    report = engine.run_project(resources, workers=workers)
    _print_json(report.to_dict())
    return report


def _print_scores(engine: ContributionEngine, developers, all_devs: bool):
    if all_devs:
        _print_json(engine.scores())
        return
    _print_json({dev: engine.score(dev) for dev in developers})


def _configure_logging(level: int):
    """Log to stderr at the given level unless the application already configured logging."""
    root = logging.getLogger()
    if root.handlers:
        return
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter('%(levelname)s %(name)s: %(message)s'))
    root.addHandler(handler)
    root.setLevel(level)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Developer contribution scoring")
    parser.add_argument("--db", type=str, default="", help="Path to SQLite ledger file (default: in-memory)")
    parser.add_argument("--config", type=str, default=None, help="Path to YAML configuration (default: the config/contrib.yaml installed alongside this module)")
    parser.add_argument("--cmf-threshold", type=int, default=None, help="Files per commit above which a commit is penalized (overrides CONTRIB_CMF_THRESHOLD)")
    parser.add_argument("--calibration-interval", type=int, default=None, help="Resources between weight recalculations (overrides CONTRIB_WEIGHT_UPDATE_INTERVAL)")
    parser.add_argument("--max-retries", type=int, default=None, help="Maximum retry attempts for locked ledger transactions (overrides CONTRIB_MAX_RETRIES)")
    parser.add_argument("--events", type=str, default="", help="Path to JSON history export (commits, threads, bugs) to process")
    parser.add_argument("--workers", type=int, default=1, help="Number of worker threads used to classify resources")
    parser.add_argument("--recalibrate", action="store_true", help="Force a weight calibration pass after processing")
    parser.add_argument("--score", type=str, action="append", default=[], help="Print the score of a developer (repeatable)")
    parser.add_argument("--scores", action="store_true", help="Print the scores of every developer in the ledger")
    parser.add_argument("--stats", action="store_true", help="Show ledger statistics")
    parser.add_argument("--weights", action="store_true", help="Show calibrated weights")
    parser.add_argument("--cleanup", type=str, default="", help="Path to JSON project export whose actions should be removed")
    parser.add_argument("--remove", action="store_true", help="Remove every action and weight from the ledger")
    parser.add_argument("--force", action="store_true", help="Skip confirmation (use with --cleanup or --remove)")
    parser.add_argument("--show-log", action="store_true", help="Print the most recent log records after the run")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log debug output to stderr")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    _configure_logging(logging.DEBUG if args.verbose else logging.WARNING)

    try:
        config = load_config(args.config, overrides={
            'oversized_commit_threshold': args.cmf_threshold,
            'calibration_interval': args.calibration_interval,
            'max_retries': args.max_retries,
        })
    except ConfigurationError as ex:
        parser.error(str(ex))

    log_buffer = attach_buffer(config.get('log_buffer_entries') or 512) if args.show_log else None

    raw = None
    if args.events:
        raw = _load_json_file(args.events, 'events file')
        if raw is None:
            return 1

    diffs, line_counts = providers_from_export(raw or {})
    ledger = ContributionLedger(args.db or None)
    exit_code = 0
    try:
        try:
            engine = ContributionEngine(ledger, config, diffs=diffs, line_counts=line_counts)
        except ConfigurationError as ex:
            print(f"Configuration error: {ex}")
            return 2

        if args.remove:
            _remove_all(engine, args.force)
            return 0
        if args.cleanup:
            return 0 if _cleanup_project(engine, args.cleanup, args.force) else 1

        if raw is not None:
            report = _process_events(engine, raw, args.workers)
            if not report.ok:
                exit_code = 1
        if args.recalibrate:
            engine.calibrator.recalculate()
        if args.score or args.scores:
            _print_scores(engine, args.score, args.scores)
        if args.weights:
            _print_json(ledger.weights())
        if args.stats:
            _print_json(ledger.stats())
    finally:
        ledger.close()
        if log_buffer is not None:
            for line in log_buffer.entries():
                print(line)
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
