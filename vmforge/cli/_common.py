from __future__ import annotations

import contextlib
import os
import signal
import sys
from pathlib import Path

import scriptconfig as scfg
from loguru import logger

from ..config import BuildConfig, load_build
from ..pipeline import Runner

log = logger

DEFAULT_BUILD_FILE = 'vmforge.toml'


class _BaseCommand(scfg.DataConfig):
    """Base options shared by all commands."""

    build = scfg.Value(
        None,
        position=1,
        help=f'Path to the build TOML (default: {DEFAULT_BUILD_FILE}).',
    )
    verbose = scfg.Value(
        0,
        short_alias=['v'],
        isflag='counter',
        help='Increase verbosity (-v, -vv).',
    )


def _build_path(p: str | None) -> Path:
    return Path(p or DEFAULT_BUILD_FILE).resolve()


def _load_build(build_path: str | None) -> tuple[BuildConfig, Path]:
    path = _build_path(build_path)
    if not path.exists():
        raise FileNotFoundError(f'Build file not found: {path}')
    cfg = load_build(path)
    log.debug('Loaded build file {}', path)
    return cfg, path


@contextlib.contextmanager
def _cancel_on_sigint(runner: Runner):
    """Turn Ctrl-C into a pipeline cancel instead of an abrupt exit.

    Only the first Ctrl-C is absorbed; a second one raises
    ``KeyboardInterrupt``.
    """

    def _handler(signum, frame):
        print('Interrupt received, cancelling after the current step...', file=sys.stderr)
        signal.signal(signal.SIGINT, prev)
        runner.cancel()

    try:
        prev = signal.getsignal(signal.SIGINT)
        if prev is None:
            prev = signal.default_int_handler
        signal.signal(signal.SIGINT, _handler)
    except ValueError:
        # Not on the main thread; leave default handling alone.
        yield runner
        return
    try:
        yield runner
    finally:
        signal.signal(signal.SIGINT, prev)


def _setup_logging(args_verbose: int, cfg_verbosity: int) -> None:
    logger.remove()
    effective_verbosity = args_verbose if args_verbose > 0 else cfg_verbosity
    level = 'WARNING'
    if effective_verbosity == 1:
        level = 'INFO'
    elif effective_verbosity >= 2:
        level = 'DEBUG'
    colorize = sys.stderr.isatty() and os.getenv('NO_COLOR') is None
    logger.add(
        sys.stderr,
        level=level,
        colorize=colorize,
        format='<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>',
    )
    log.debug(
        'Logging configured at {} (effective_verbosity={}, colorize={})',
        level,
        effective_verbosity,
        colorize,
    )


def _count_verbose(argv: list[str]) -> int:
    count = 0
    for item in argv:
        if item == '--verbose':
            count += 1
        elif item.startswith('-') and not item.startswith('--'):
            short = item[1:]
            if short and set(short) <= {'v'}:
                count += len(short)
    return count


def _peek_build_path(argv: list[str]) -> str | None:
    """Find the build file argument before scriptconfig parses argv.

    The first non-flag token is the subcommand; the next one is the build
    file.
    """
    if '--build' in argv:
        try:
            return argv[argv.index('--build') + 1]
        except IndexError:
            return None
    positional = [item for item in argv if not item.startswith('-')]
    if len(positional) >= 2:
        return positional[1]
    return None
