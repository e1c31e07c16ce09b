"""CLI entrypoint.

Exit codes for ``check``: 0 free, 1 locked, 2 unknown (the check failed).
``run`` exits with the command's own status.
"""

from __future__ import annotations

import argparse
import logging
import os
import subprocess
import sys

from dirlock.core.config import LockConfig
from dirlock.core.exceptions import ConfigurationError
from dirlock.core.locks import LockIdentity, LockOptions, LockSession, MkdirFileLock, create_lock_path
from dirlock.core.logging import setup_logging
from dirlock.core.version import __version__

# Shell tab-completion (optional dependency)
_ARGCOMPLETE_AVAILABLE = False
try:
    import argcomplete

    _ARGCOMPLETE_AVAILABLE = True
except ImportError:
    pass  # argcomplete not installed

EXIT_FREE = 0
EXIT_LOCKED = 1
EXIT_UNKNOWN = 2


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments"""
    parser = argparse.ArgumentParser(
        prog="dirlock",
        description="dirlock - Advisory cross-process locks for shared working directories",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Where would the build lock for this project live?
  dirlock path --id build --dir .nuxt

  # Is someone else building right now?
  dirlock check --id build --dir .nuxt

  # Hold the lock while running a command
  dirlock run --id build --dir .nuxt -- make build
""",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", default=None, help="Logging level (default: DIRLOCK_LOG_LEVEL or INFO)")
    parser.add_argument("--log-format", default=None, choices=["text", "json"], help="Log output format")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--id", dest="lock_id", default=None, help="Lock domain (default: DIRLOCK_DEFAULT_ID or nuxt)")
    common.add_argument("--dir", dest="working_dir", default=".", help="Working directory being locked")
    common.add_argument("--root", default=None, help="Project root (default: current directory)")
    common.add_argument("--stale", type=float, default=None, help="Stale threshold in seconds")

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("path", parents=[common], help="Print the lock directory path")
    subparsers.add_parser("check", parents=[common], help="Report whether the lock is held")
    run_parser = subparsers.add_parser("run", parents=[common], help="Run a command while holding the lock")
    run_parser.add_argument("cmd", nargs=argparse.REMAINDER, help="Command to run (after --)")

    if _ARGCOMPLETE_AVAILABLE:
        argcomplete.autocomplete(parser)

    args = parser.parse_args(argv)
    if args.command == "run":
        if args.cmd and args.cmd[0] == "--":
            args.cmd = args.cmd[1:]
        if not args.cmd:
            parser.error("run requires a command after --")
    return args


def _build_identity(args: argparse.Namespace, config: LockConfig) -> LockIdentity:
    root = os.path.abspath(args.root or os.getcwd())
    working_dir = os.path.abspath(os.path.join(root, args.working_dir))
    return LockIdentity(working_dir=working_dir, root=root, lock_id=args.lock_id or config.default_id)


def _check(identity: LockIdentity, config: LockConfig, stale_seconds: float, logger: logging.Logger) -> int:
    lock_path = create_lock_path(identity, config.cache_subdir)
    try:
        locked = MkdirFileLock().check(lock_path, stale_seconds=stale_seconds)
    except FileNotFoundError:
        # Lock directory never created: nobody holds it
        print(f"free {lock_path}")
        return EXIT_FREE
    except OSError as e:
        logger.error(f"Unable to check lock {lock_path}: {e}")
        print(f"unknown {lock_path}")
        return EXIT_UNKNOWN
    print(f"{'locked' if locked else 'free'} {lock_path}")
    return EXIT_LOCKED if locked else EXIT_FREE


def _run(
    identity: LockIdentity, config: LockConfig, stale_seconds: float, cmd: list[str], logger: logging.Logger
) -> int:
    with LockSession(identity, LockOptions(stale_seconds=stale_seconds), config=config, logger=logger) as session:
        if session.acquired:
            logger.info(f"Holding lock {session.lock_path}")
        try:
            completed = subprocess.run(cmd, check=False)
        except OSError as e:
            logger.error(f"Unable to run {cmd[0]}: {e}")
            return 127
        if session.compromised:
            logger.warning(f"Lock {session.lock_path} was lost while running {cmd[0]}")
        return completed.returncode


def main(argv: list[str] | None = None) -> int:
    args = parse_arguments(argv)
    logger = setup_logging(args.log_level, args.log_format)

    config = LockConfig.from_env(logger=logger)
    if args.stale is not None:
        config.stale_seconds = args.stale
    try:
        config.validate()
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        return EXIT_UNKNOWN

    identity = _build_identity(args, config)

    if args.command == "path":
        print(create_lock_path(identity, config.cache_subdir))
        return 0
    if args.command == "check":
        return _check(identity, config, config.stale_seconds, logger)
    return _run(identity, config, config.stale_seconds, args.cmd, logger)


if __name__ == "__main__":
    sys.exit(main())
