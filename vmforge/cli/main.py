"""Top-level modal CLI wiring and logging setup."""

from __future__ import annotations

import sys

import scriptconfig as scfg

from ..errors import ConfigError
from ._common import (
    _count_verbose,
    _load_build,
    _peek_build_path,
    _setup_logging,
    log,
)
from .build import CreateCLI, PlanCLI, ValidateCLI


class VMForgeModalCLI(scfg.ModalCLI):
    """Create or replace a build VM through a hypervisor driver."""

    validate = ValidateCLI
    plan = PlanCLI
    create = CreateCLI


def main(argv: list[str] | None = None) -> None:
    verbosity = 1
    if argv is None:
        argv = sys.argv[1:]
    try:
        cfg, _ = _load_build(_peek_build_path(argv))
        verbosity = cfg.verbosity
    except Exception:
        verbosity = 1

    _setup_logging(_count_verbose(argv), verbosity)

    try:
        rc = VMForgeModalCLI.main(argv=argv, _noexit=True)
    except ConfigError as ex:
        print(f'ERROR: {ex}', file=sys.stderr)
        sys.exit(1)
    except Exception as ex:
        print(f'ERROR: {ex}', file=sys.stderr)
        log.error('Unhandled vmforge error: {}', ex)
        sys.exit(2)

    if any(flag in argv for flag in ('-h', '--help')):
        sys.exit(0)
    if isinstance(rc, int):
        sys.exit(rc)
    sys.exit(0)
