"""Build-file dataclasses, validation, and TOML load/save helpers."""

from __future__ import annotations

import tomllib
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path

from .errors import ConfigError

DEFAULT_GUEST_OS_TYPE = 'otherGuest'
FIRMWARE_KINDS = ('bios', 'efi')


@dataclass
class DiskConfig:
    disk_size: int = 0
    disk_thin_provisioned: bool = False
    disk_eagerly_scrub: bool = False
    disk_controller_index: int = 0


@dataclass
class CreateConfig:
    """Hardware and guest settings for the VM to be created.

    Either ``disk_size`` (a single primary disk, in MB) or ``storage`` (one
    :class:`DiskConfig` per disk) must be given, never both.
    """

    vm_version: int = 0
    guest_os_type: str = ''
    firmware: str = ''

    disk_controller_type: str = ''
    disk_size: int = 0
    disk_thin_provisioned: bool = False

    network: str = ''
    network_card: str = ''
    usb_controller: bool = False

    notes: str = ''

    disk_type: str = ''
    networks: list[str] = field(default_factory=list)
    storage: list[DiskConfig] = field(default_factory=list)

    def prepare(self) -> list[ValueError]:
        """Normalize in place and collect every validation problem.

        Returns:
            list[ValueError]: ordered errors; empty when the config is usable.

        Example:
            >>> from vmforge.config import CreateConfig
            >>> cfg = CreateConfig(disk_size=1024)
            >>> cfg.prepare()
            []
            >>> cfg.guest_os_type
            'otherGuest'
        """
        errs: list[ValueError] = []

        if self.disk_size != 0 and len(self.storage) != 0:
            errs.append(
                ValueError("'disk_size' and 'storage' are mutually exclusive")
            )
        elif self.disk_size == 0 and len(self.storage) == 0:
            errs.append(ValueError("either 'disk_size' or 'storage' is required"))

        if self.guest_os_type == '':
            self.guest_os_type = DEFAULT_GUEST_OS_TYPE

        if self.firmware != '' and self.firmware not in FIRMWARE_KINDS:
            errs.append(ValueError("'firmware' must be 'bios' or 'efi'"))

        if not isinstance(self.disk_size, int):
            errs.append(ValueError("'disk_size' must be an integer"))

        for idx, disk in enumerate(self.storage):
            if not isinstance(disk.disk_size, int) or disk.disk_size <= 0:
                errs.append(
                    ValueError(
                        f"'storage[{idx}].disk_size' must be a positive integer"
                    )
                )
        return errs


@dataclass
class LocationConfig:
    vm_name: str = ''
    folder: str = ''
    cluster: str = ''
    host: str = ''
    resource_pool: str = ''
    datastore: str = ''


@dataclass
class DriverConfig:
    kind: str = 'dryrun'
    options: dict = field(default_factory=dict)


@dataclass
class BuildConfig:
    create: CreateConfig = field(default_factory=CreateConfig)
    location: LocationConfig = field(default_factory=LocationConfig)
    driver: DriverConfig = field(default_factory=DriverConfig)
    force: bool = False
    verbosity: int = 1

    def prepare(self) -> list[ValueError]:
        errs = self.create.prepare()
        if not str(self.location.vm_name).strip():
            errs.append(ValueError("'vm_name' is required"))
        return errs

    def validated(self, source: str = '') -> 'BuildConfig':
        errs = self.prepare()
        if errs:
            raise ConfigError(errs, source=source)
        return self


_SECTIONS = ('create', 'location', 'driver')
_TOP_LEVEL = ('force', 'verbosity')


def _field_names(cls) -> set[str]:
    return {f.name for f in fields(cls)}


def _coerce(default: object, value: object) -> object:
    """Convert numeric strings for int fields; leave anything else for prepare."""
    if isinstance(default, int) and not isinstance(default, bool):
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                return value
    return value


def _disk_from_dict(raw: dict) -> DiskConfig:
    disk = DiskConfig()
    for k, v in raw.items():
        if hasattr(disk, k):
            setattr(disk, k, _coerce(getattr(disk, k), v))
    return disk


def build_from_dict(raw: dict) -> BuildConfig:
    cfg = BuildConfig()
    for section in _SECTIONS:
        body = raw.get(section, None)
        if not isinstance(body, dict):
            continue
        obj = getattr(cfg, section)
        for k, v in body.items():
            if not hasattr(obj, k):
                continue
            if section == 'create' and k == 'storage':
                if isinstance(v, dict):
                    v = [v]
                v = [_disk_from_dict(d) for d in v if isinstance(d, dict)]
            elif section == 'create' and k == 'networks':
                if isinstance(v, list):
                    v = [str(n) for n in v]
                else:
                    v = [str(v)]
            elif section == 'driver' and k == 'options':
                v = dict(v)
            else:
                v = _coerce(getattr(obj, k), v)
            setattr(obj, k, v)
    if 'force' in raw:
        cfg.force = bool(raw['force'])
    if 'verbosity' in raw:
        cfg.verbosity = int(raw['verbosity'])
    return cfg


def _toml_escape(s: str) -> str:
    return s.replace('\\', '\\\\').replace('"', '\\"')


def _toml_value(val: object) -> str:
    if isinstance(val, bool):
        return 'true' if val else 'false'
    if isinstance(val, int):
        return str(val)
    if isinstance(val, list):
        parts = [_toml_value(item) for item in val]
        return f'[{", ".join(parts)}]'
    return f'"{_toml_escape(str(val))}"'


def dump_toml(cfg: BuildConfig) -> str:
    d = asdict(cfg)
    lines: list[str] = [f'force = {_toml_value(cfg.force)}']
    if cfg.verbosity != 1:
        lines.append(f'verbosity = {cfg.verbosity}')
    lines.append('')

    storage = d['create'].pop('storage')
    lines.append('[create]')
    for k, v in d['create'].items():
        lines.append(f'{k} = {_toml_value(v)}')
    lines.append('')
    for disk in storage:
        lines.append('[[create.storage]]')
        for k, v in disk.items():
            lines.append(f'{k} = {_toml_value(v)}')
        lines.append('')

    lines.append('[location]')
    for k, v in d['location'].items():
        lines.append(f'{k} = {_toml_value(v)}')
    lines.append('')

    lines.append('[driver]')
    lines.append(f'kind = {_toml_value(cfg.driver.kind)}')
    if cfg.driver.options:
        lines.append('')
        lines.append('[driver.options]')
        for k, v in cfg.driver.options.items():
            lines.append(f'{k} = {_toml_value(v)}')
    return '\n'.join(lines).rstrip() + '\n'


def load_build(path: Path) -> BuildConfig:
    raw = tomllib.loads(Path(path).read_text(encoding='utf-8'))
    return build_from_dict(raw)


def save_build(path: Path, cfg: BuildConfig) -> None:
    Path(path).write_text(dump_toml(cfg), encoding='utf-8')


def lint_build_file(path: Path) -> list[str]:
    """Report keys the loader would silently ignore."""
    raw = tomllib.loads(Path(path).read_text(encoding='utf-8'))
    probs: list[str] = []
    for key in raw:
        if key not in _SECTIONS and key not in _TOP_LEVEL:
            probs.append(f'unknown top-level key: {key!r}')
    known = {
        'create': _field_names(CreateConfig),
        'location': _field_names(LocationConfig),
        'driver': _field_names(DriverConfig),
    }
    for section, allowed in known.items():
        body = raw.get(section, None)
        if body is None:
            continue
        if not isinstance(body, dict):
            probs.append(f'{section} must be a table')
            continue
        for key in body:
            if key not in allowed:
                probs.append(f'{section} unknown key: {key!r}')
    create = raw.get('create', {})
    if isinstance(create, dict) and 'networks' in create:
        if not isinstance(create['networks'], list):
            probs.append('create.networks should be a list of network names')
    storage = create.get('storage', []) if isinstance(create, dict) else []
    if isinstance(storage, list):
        disk_keys = _field_names(DiskConfig)
        for idx, disk in enumerate(storage):
            if not isinstance(disk, dict):
                probs.append(f'create.storage[{idx}] must be a table')
                continue
            for key in disk:
                if key not in disk_keys:
                    probs.append(f'create.storage[{idx}] unknown key: {key!r}')
    return probs
