"""Build-file commands: validate, plan, and create."""

from __future__ import annotations

import sys

import scriptconfig as scfg

from ..config import lint_build_file
from ..driver import CreateRequest, load_driver
from ..pipeline import BuildState, BuildStatus, Runner
from ..steps import CreateVMStep
from ..ui import LoggerUi
from ._common import _BaseCommand, _cancel_on_sigint, _load_build


class ValidateCLI(_BaseCommand):
    """Check a build file and report every problem found."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg, path = _load_build(args.build)
        for prob in lint_build_file(path):
            print(f'WARNING: {prob}')
        errs = cfg.prepare()
        if errs:
            for err in errs:
                print(f'ERROR: {err}')
            return 1
        print(f'OK: {path}')
        return 0


class PlanCLI(_BaseCommand):
    """Show the create request that would be sent to the driver."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg, path = _load_build(args.build)
        cfg.validated(source=str(path))
        request = CreateRequest.from_config(cfg.create, cfg.location)
        print(f'# create request for {path}')
        for line in request.summary_lines():
            print(line)
        return 0


class CreateCLI(_BaseCommand):
    """Create the VM, destroying it again if the build does not succeed."""

    force = scfg.Value(
        False,
        isflag=True,
        help='Destroy an existing VM/template with the same name first.',
    )
    dry_run = scfg.Value(
        False, isflag=True, help='Use the dry-run driver; no remote changes.'
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg, path = _load_build(args.build)
        cfg.validated(source=str(path))
        force = bool(args.force) or cfg.force
        driver = load_driver(cfg.driver, dry_run=bool(args.dry_run))
        ui = LoggerUi(prefix=f'{cfg.location.vm_name}: ')
        state = BuildState(ui=ui, driver=driver)
        runner = Runner([CreateVMStep(cfg.create, cfg.location, force=force)])
        with _cancel_on_sigint(runner):
            runner.run(state)
        if state.status is BuildStatus.SUCCEEDED:
            print(f'Created VM: {cfg.location.vm_name}')
            return 0
        if state.error is not None:
            print(f'ERROR: {state.error}', file=sys.stderr)
        print(f'Build {state.status.value}', file=sys.stderr)
        return 1
