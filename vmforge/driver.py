"""Hypervisor driver interface, the flattened create request, and the dry-run driver."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Protocol

import ubelt as ub
from loguru import logger

from .config import CreateConfig, DiskConfig, DriverConfig, LocationConfig
from .errors import DriverError, VMNotFoundError

log = logger

DRYRUN_KIND = 'dryrun'


class VMHandle(Protocol):
    name: str

    def destroy(self) -> None: ...


class Driver(Protocol):
    """Remote control-plane operations consumed by the create step.

    ``find_vm`` returns ``None`` (or raises :class:`VMNotFoundError`) when no
    VM/template has the name. Any other exception means the lookup itself
    failed.
    """

    def find_vm(self, name: str) -> Optional[VMHandle]: ...

    def create_vm(self, request: 'CreateRequest') -> VMHandle: ...


@dataclass(frozen=True)
class CreateRequest:
    name: str
    folder: str = ''
    cluster: str = ''
    host: str = ''
    resource_pool: str = ''
    datastore: str = ''
    version: int = 0
    guest_os: str = ''
    firmware: str = ''
    disk_controller_type: str = ''
    disk_size: int = 0
    disk_thin_provisioned: bool = False
    global_disk_type: str = ''
    network: str = ''
    network_card: str = ''
    usb_controller: bool = False
    annotation: str = ''
    networks: tuple[str, ...] = ()
    storage: tuple[DiskConfig, ...] = ()

    @classmethod
    def from_config(
        cls, cfg: CreateConfig, location: LocationConfig
    ) -> 'CreateRequest':
        return cls(
            name=location.vm_name,
            folder=location.folder,
            cluster=location.cluster,
            host=location.host,
            resource_pool=location.resource_pool,
            datastore=location.datastore,
            version=cfg.vm_version,
            guest_os=cfg.guest_os_type,
            firmware=cfg.firmware,
            disk_controller_type=cfg.disk_controller_type,
            disk_size=cfg.disk_size,
            disk_thin_provisioned=cfg.disk_thin_provisioned,
            global_disk_type=cfg.disk_type,
            network=cfg.network,
            network_card=cfg.network_card,
            usb_controller=cfg.usb_controller,
            annotation=cfg.notes,
            networks=tuple(cfg.networks),
            storage=tuple(cfg.storage),
        )

    def summary_lines(self) -> list[str]:
        lines = []
        for key, val in self.__dict__.items():
            if key == 'storage':
                for idx, disk in enumerate(val):
                    lines.append(
                        f'storage[{idx}] = size={disk.disk_size} '
                        f'thin={disk.disk_thin_provisioned} '
                        f'eagerly_scrub={disk.disk_eagerly_scrub} '
                        f'controller={disk.disk_controller_index}'
                    )
                continue
            if isinstance(val, tuple):
                val = list(val)
            lines.append(f'{key} = {val!r}')
        return lines


@dataclass
class DryRunVM:
    name: str
    driver: 'DryRunDriver'
    request: Optional[CreateRequest] = None

    def destroy(self) -> None:
        self.driver._destroy(self.name)


@dataclass
class DryRunDriver:
    """In-memory driver that logs what a real driver would do.

    ``existing`` seeds the inventory with VM/template names so replace flows
    can be rehearsed.
    """

    existing: Iterable[str] = ()
    inventory: dict[str, DryRunVM] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name in self.existing:
            self.inventory[str(name)] = DryRunVM(name=str(name), driver=self)

    def find_vm(self, name: str) -> Optional[DryRunVM]:
        log.debug('DRYRUN: lookup vm {}', name)
        return self.inventory.get(name, None)

    def create_vm(self, request: CreateRequest) -> DryRunVM:
        if request.name in self.inventory:
            raise DriverError(f'vm {request.name!r} already exists')
        log.info('DRYRUN: create vm {}', request.name)
        for line in request.summary_lines():
            log.debug('DRYRUN:   {}', line)
        vm = DryRunVM(name=request.name, driver=self, request=request)
        self.inventory[request.name] = vm
        return vm

    def _destroy(self, name: str) -> None:
        if name not in self.inventory:
            raise VMNotFoundError(f'vm {name!r} not found')
        log.info('DRYRUN: destroy vm {}', name)
        del self.inventory[name]


def load_driver(cfg: DriverConfig, *, dry_run: bool = False) -> Driver:
    """Build the driver named by ``cfg.kind``.

    ``kind`` is either ``'dryrun'`` or a ``package.module:factory`` path; the
    factory is called with ``cfg.options`` as keyword arguments.
    """
    kind = (cfg.kind or DRYRUN_KIND).strip()
    if kind == DRYRUN_KIND:
        return DryRunDriver(existing=cfg.options.get('existing', ()))
    if dry_run:
        log.info('Using dry-run driver instead of {}', kind)
        return DryRunDriver()
    modname, sep, attr = kind.partition(':')
    if not sep or not modname or not attr:
        raise DriverError(
            f"driver kind must be 'dryrun' or 'module:factory', got {kind!r}"
        )
    try:
        module = ub.import_module_from_name(modname)
    except ImportError as ex:
        raise DriverError(f'cannot import driver module {modname!r}: {ex}') from ex
    factory = getattr(module, attr, None)
    if factory is None:
        raise DriverError(f'driver module {modname!r} has no attribute {attr!r}')
    log.debug('Loading driver {} with options {}', kind, sorted(cfg.options))
    return factory(**cfg.options)
