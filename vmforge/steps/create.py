"""Pipeline step that creates the build VM, replacing a same-named one on demand."""

from __future__ import annotations

from loguru import logger

from ..config import CreateConfig, LocationConfig
from ..driver import CreateRequest
from ..errors import VMForgeError, VMNotFoundError
from ..pipeline import BuildState, StepAction

log = logger


class CreateVMStep:
    """Create the VM described by ``config`` at ``location``.

    If a VM or template with the target name already exists the step halts,
    unless ``force`` is set, in which case the existing one is destroyed
    first. When the build ends halted or cancelled, :meth:`cleanup` destroys
    the VM this step created.
    """

    def __init__(
        self,
        config: CreateConfig,
        location: LocationConfig,
        force: bool = False,
    ):
        self.config = config
        self.location = location
        self.force = force

    def run(self, state: BuildState) -> StepAction:
        ui = state.ui
        d = state.driver
        name = self.location.vm_name

        try:
            existing = d.find_vm(name)
        except VMNotFoundError:
            existing = None
        except Exception as ex:
            err = VMForgeError(f'error looking up {name}: {ex}')
            err.__cause__ = ex
            return state.halt(err)

        if existing is not None:
            if not self.force:
                return state.halt(
                    VMForgeError(
                        f'{name} already exists, you can use -force flag to destroy it'
                    )
                )
            ui.say(
                f'the vm/template {name} already exists, but deleting it due to -force flag'
            )
            try:
                existing.destroy()
            except Exception as ex:
                err = VMForgeError(f'error destroying {name}: {ex}')
                err.__cause__ = ex
                return state.halt(err)
            log.debug('Destroyed pre-existing vm {}', name)

        ui.say('Creating VM...')
        request = CreateRequest.from_config(self.config, self.location)
        try:
            vm = d.create_vm(request)
        except Exception as ex:
            err = VMForgeError(f'error creating vm: {ex}')
            err.__cause__ = ex
            return state.halt(err)
        state.vm = vm
        log.debug('Created vm {}', name)
        return StepAction.CONTINUE

    def cleanup(self, state: BuildState) -> None:
        if not state.status.needs_rollback:
            return
        vm = state.vm
        if vm is None:
            return

        ui = state.ui
        ui.say('Destroying VM...')
        try:
            vm.destroy()
        except Exception as ex:
            ui.error(str(ex))
            return
        state.vm = None
