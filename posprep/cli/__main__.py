from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from posprep.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from posprep.logging.init import setup_logging
from posprep.models.processing_result import PipelineResult, StageStatus
from posprep.services.grouper import find_override_file, group_files
from posprep.services.pipeline import run_pipeline

"""CLI entrypoint.

Flow:
- Load .env (may set POSPREP_CONFIG)
- Load and validate the YAML config
- Run the enabled stages, or only list the discovered groups
- Map stage outcomes to an exit code
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

CONFIG_ENV_VAR = "POSPREP_CONFIG"


def _load_env_file(path: Path, override: bool = False) -> None:
    """Load .env using python-dotenv; failures only produce a warning."""
    try:
        if path.exists():
            load_dotenv(dotenv_path=path, override=override)
    except OSError as e:  # pragma: no cover
        print(f"WARNING: failed to load .env via python-dotenv: {e}")


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="posprep",
        description="Combine numbered spreadsheets, match SKUs and build POS/label files",
    )
    p.add_argument("--config", type=Path, default=None, help="Path to the YAML config file")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--skip-backup", action="store_true", help="Do not run the backup stage")
    p.add_argument("--skip-combine", action="store_true", help="Do not run the combine stage")
    p.add_argument("--skip-match", action="store_true", help="Do not run the SKU match stage")
    p.add_argument("--skip-labels", action="store_true", help="Do not run the label stage")
    p.add_argument("--list-groups", action="store_true", help="Print discovered file groups then exit")
    return p.parse_args(argv)


def _resolve_config_path(args: argparse.Namespace) -> Path:
    if args.config is not None:
        return args.config
    env_value = os.getenv(CONFIG_ENV_VAR)
    if env_value:
        return Path(env_value)
    return DEFAULT_CONFIG_PATH


def _list_groups(cfg) -> int:
    folders = cfg.combine.input_folders
    if not folders:
        print("list-groups: no input folders configured")
        return EXIT_FATAL
    override = find_override_file(folders, cfg.combine.extension)
    groups = group_files(folders, cfg.combine.extension, override=override)
    if not groups:
        print("list-groups: no groups found")
        return EXIT_SUCCESS_ALL
    for key, group in groups.items():
        print(f"GROUP {key}: {len(group.files)} file(s)")
        for path in group.files:
            marker = " (override)" if path == group.override_file else ""
            print(f"  {path}{marker}")
    return EXIT_SUCCESS_ALL


def _exit_code(result: PipelineResult) -> int:
    ran = [s for s in result.stages if s.status != StageStatus.SKIPPED]
    if not ran:
        return EXIT_SUCCESS_ALL
    failed = [s for s in ran if s.status == StageStatus.FAILED]
    partial = [s for s in ran if s.status == StageStatus.PARTIAL]
    if len(failed) == len(ran):
        return EXIT_FATAL
    if failed or partial:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    # None only: an explicit [] from tests must not pick up pytest's own argv
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    if args.debug:
        logger.debug("debug mode enabled")

    _load_env_file(Path(".env"))
    config_path = _resolve_config_path(args)
    try:
        cfg = load_config(config_path)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    logger.info(f"config loaded from: {config_path}")

    if args.list_groups:
        return _list_groups(cfg)

    skip = {
        name
        for name, flag in (
            ("backup", args.skip_backup),
            ("combine", args.skip_combine),
            ("match", args.skip_match),
            ("labels", args.skip_labels),
        )
        if flag
    }

    result = run_pipeline(cfg, skip=skip)
    for stage in result.stages:
        logger.info(f"stage={stage.name} status={stage.status.value}")
    if result.error_log_path is not None:
        logger.info(f"errors recorded in: {result.error_log_path}")
    return _exit_code(result)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
