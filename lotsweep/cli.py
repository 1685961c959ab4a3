"""lotsweep.cli

Command line interface entry point for lotsweep.

Design constraints:
- argparse-based.
- Lazy imports: do not import the engine at parse time.

Exit codes: 0 ok, 1 sweep failed, 2 usage or configuration error.
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class CliContext:
    repo_root: Path


def _repo_root_from_cwd() -> Path:
    return Path.cwd()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lotsweep",
        description="Backtest lot-based trading strategies across a parameter grid.",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit.",
    )

    sub = parser.add_subparsers(dest="command")

    p_run = sub.add_parser("run", help="Run the full parameter sweep")
    p_run.add_argument("--config", type=Path, default=None, help="Config file (default: config/default.yaml)")
    p_run.add_argument("--workers", type=int, default=None, help="Override sweep.max_workers.")

    p_grid = sub.add_parser("grid", help="Print the size of the parameter grid")
    p_grid.add_argument("--config", type=Path, default=None)

    p_status = sub.add_parser("status", help="Print config and directory status")
    p_status.add_argument("--config", type=Path, default=None)

    return parser


def _print_version() -> None:
    from lotsweep import __version__

    print(f"lotsweep v{__version__}")


def _config_path(ctx: CliContext, args: argparse.Namespace) -> Path:
    return args.config or (ctx.repo_root / "config" / "default.yaml")


def _cmd_run(ctx: CliContext, args: argparse.Namespace) -> int:
    from lotsweep.core.config import Config
    from lotsweep.core.exceptions import ConfigError
    from lotsweep.core.logs import configure_logging

    try:
        config = Config.from_yaml(_config_path(ctx, args))
        if args.workers is not None:
            sweep = config.sweep.model_copy(update={"max_workers": args.workers})
            config = config.model_copy(update={"sweep": sweep})
    except ConfigError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    configure_logging(config.logging)

    # Lazy import: pulls in numpy and the engine.
    from lotsweep.backtest.sweep import SweepOrchestrator
    from lotsweep.core.exceptions import LotsweepError

    print("Running Simulations")
    try:
        result = SweepOrchestrator(config).run()
    except LotsweepError as e:
        print(f"sweep failed: {e}", file=sys.stderr)
        return 1

    print(f"- combinations: {result.total}")
    print(f"- completed: {result.completed}")
    print(f"- skipped: {result.skipped}")
    print(f"Done in {result.elapsed_s:.2f}s")
    print(f"Raw results can be found in {config.files.output_dir}")
    return 0


def _cmd_grid(ctx: CliContext, args: argparse.Namespace) -> int:
    from lotsweep.backtest.sweep import count_combinations, domain_sizes
    from lotsweep.core.config import Config
    from lotsweep.core.exceptions import ConfigError

    try:
        config = Config.from_yaml(_config_path(ctx, args))
    except ConfigError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    for name, size in domain_sizes(config).items():
        print(f"- {name}: {size}")
    print(f"combinations: {count_combinations(config)}")
    return 0


def _cmd_status(ctx: CliContext, args: argparse.Namespace) -> int:
    from lotsweep.core.config import Config
    from lotsweep.core.exceptions import ConfigError

    cfg_path = _config_path(ctx, args)
    try:
        config = Config.from_yaml(cfg_path)
        config_status = str(cfg_path)
    except ConfigError as e:
        print("lotsweep status")
        print(f"- config: {cfg_path} (error: {e})")
        print("- system health: degraded")
        return 2

    def _dir(p: Path) -> str:
        return f"{p} ({'present' if p.exists() else 'missing'})"

    print("lotsweep status")
    print(f"- config: {config_status}")
    print(f"- data_dir: {_dir(config.files.data_dir)}")
    print(f"- output_dir: {_dir(config.files.output_dir)}")
    print(f"- log_dir: {_dir(config.files.log_dir)}")
    print(f"- range: {config.simulation.start_date} -> {config.simulation.end_date}")
    health = "ok" if config.files.data_dir.exists() else "degraded"
    print(f"- system health: {health}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        _print_version()
        return 0

    if not args.command:
        parser.print_help()
        return 2

    ctx = CliContext(repo_root=_repo_root_from_cwd())

    dispatch: dict[str, Callable[[CliContext, argparse.Namespace], int]] = {
        "run": _cmd_run,
        "grid": _cmd_grid,
        "status": _cmd_status,
    }

    fn = dispatch.get(str(args.command))
    if fn is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 2

    return int(fn(ctx, args))


if __name__ == "__main__":
    raise SystemExit(main())
