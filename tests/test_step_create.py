"""Tests for the create-VM step: create, replace, halt, and rollback paths."""

from __future__ import annotations

from dataclasses import dataclass, field

from vmforge.config import CreateConfig, DiskConfig, LocationConfig
from vmforge.errors import DriverError, VMNotFoundError
from vmforge.pipeline import BuildState, BuildStatus, StepAction
from vmforge.steps import CreateVMStep


@dataclass
class RecordingUi:
    said: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def say(self, message: str) -> None:
        self.said.append(message)

    def error(self, message: str) -> None:
        self.errors.append(message)


@dataclass
class FakeVM:
    name: str
    calls: list[str]
    fail_destroy: str = ''

    def destroy(self) -> None:
        self.calls.append(f'destroy:{self.name}')
        if self.fail_destroy:
            raise DriverError(self.fail_destroy)


@dataclass
class FakeDriver:
    existing: FakeVM | None = None
    find_error: Exception | None = None
    create_error: str = ''
    calls: list[str] = field(default_factory=list)
    requests: list = field(default_factory=list)

    def find_vm(self, name):
        self.calls.append(f'find:{name}')
        if self.find_error is not None:
            raise self.find_error
        return self.existing

    def create_vm(self, request):
        self.calls.append(f'create:{request.name}')
        self.requests.append(request)
        if self.create_error:
            raise DriverError(self.create_error)
        return FakeVM(name=request.name, calls=self.calls)


def _step(force: bool = False) -> CreateVMStep:
    cfg = CreateConfig(disk_size=20480, firmware='efi', network='VM Network')
    cfg.prepare()
    loc = LocationConfig(vm_name='web01', cluster='c1', datastore='ds1')
    return CreateVMStep(cfg, loc, force=force)


def _state(driver: FakeDriver) -> BuildState:
    return BuildState(ui=RecordingUi(), driver=driver)


def test_create_when_missing() -> None:
    driver = FakeDriver()
    state = _state(driver)
    action = _step().run(state)
    assert action is StepAction.CONTINUE
    assert driver.calls == ['find:web01', 'create:web01']
    assert state.vm is not None
    assert state.vm.name == 'web01'
    assert state.error is None
    assert 'Creating VM...' in state.ui.said


def test_existing_without_force_halts() -> None:
    driver = FakeDriver()
    driver.existing = FakeVM(name='web01', calls=driver.calls)
    state = _state(driver)
    action = _step().run(state)
    assert action is StepAction.HALT
    assert driver.calls == ['find:web01']
    assert state.vm is None
    msg = str(state.error)
    assert 'already exists' in msg
    assert '-force' in msg


def test_existing_with_force_replaces() -> None:
    driver = FakeDriver()
    driver.existing = FakeVM(name='web01', calls=driver.calls)
    state = _state(driver)
    action = _step(force=True).run(state)
    assert action is StepAction.CONTINUE
    assert driver.calls == ['find:web01', 'destroy:web01', 'create:web01']
    assert state.vm is not None
    assert state.vm is not driver.existing
    assert any('-force flag' in m for m in state.ui.said)


def test_create_failure_halts_without_handle() -> None:
    driver = FakeDriver(create_error='quota exceeded')
    state = _state(driver)
    action = _step().run(state)
    assert action is StepAction.HALT
    assert 'quota exceeded' in str(state.error)
    assert 'error creating vm' in str(state.error)
    assert state.vm is None


def test_replace_destroy_failure_halts_before_create() -> None:
    driver = FakeDriver()
    driver.existing = FakeVM(
        name='web01', calls=driver.calls, fail_destroy='locked'
    )
    state = _state(driver)
    action = _step(force=True).run(state)
    assert action is StepAction.HALT
    assert driver.calls == ['find:web01', 'destroy:web01']
    assert 'error destroying web01' in str(state.error)
    assert state.vm is None


def test_lookup_failure_halts() -> None:
    driver = FakeDriver(find_error=DriverError('permission denied'))
    state = _state(driver)
    action = _step(force=True).run(state)
    assert action is StepAction.HALT
    assert driver.calls == ['find:web01']
    assert 'error looking up web01' in str(state.error)
    assert isinstance(state.error.__cause__, DriverError)


def test_lookup_not_found_error_means_missing() -> None:
    driver = FakeDriver(find_error=VMNotFoundError('no such vm'))
    state = _state(driver)
    action = _step().run(state)
    assert action is StepAction.CONTINUE
    assert driver.calls == ['find:web01', 'create:web01']


def test_request_flattens_config_and_location() -> None:
    cfg = CreateConfig(
        vm_version=14,
        firmware='bios',
        storage=[DiskConfig(disk_size=1024), DiskConfig(disk_size=2048)],
        networks=['a', 'b'],
        notes='built by ci',
        disk_type='thin',
    )
    assert cfg.prepare() == []
    loc = LocationConfig(
        vm_name='web01',
        folder='f',
        cluster='c',
        host='h',
        resource_pool='rp',
        datastore='ds',
    )
    driver = FakeDriver()
    CreateVMStep(cfg, loc).run(_state(driver))
    (req,) = driver.requests
    assert req.name == 'web01'
    assert (req.folder, req.cluster, req.host) == ('f', 'c', 'h')
    assert (req.resource_pool, req.datastore) == ('rp', 'ds')
    assert req.version == 14
    assert req.guest_os == 'otherGuest'
    assert req.annotation == 'built by ci'
    assert req.global_disk_type == 'thin'
    assert req.networks == ('a', 'b')
    assert [d.disk_size for d in req.storage] == [1024, 2048]


def test_cleanup_destroys_on_cancel() -> None:
    driver = FakeDriver()
    state = _state(driver)
    step = _step()
    assert step.run(state) is StepAction.CONTINUE
    state.status = BuildStatus.CANCELLED
    step.cleanup(state)
    assert driver.calls == ['find:web01', 'create:web01', 'destroy:web01']
    assert state.vm is None
    assert 'Destroying VM...' in state.ui.said


def test_cleanup_destroys_on_halt() -> None:
    driver = FakeDriver()
    state = _state(driver)
    step = _step()
    step.run(state)
    state.status = BuildStatus.HALTED
    step.cleanup(state)
    assert driver.calls[-1] == 'destroy:web01'


def test_cleanup_noop_on_success() -> None:
    driver = FakeDriver()
    state = _state(driver)
    step = _step()
    step.run(state)
    calls_after_run = list(driver.calls)
    state.status = BuildStatus.SUCCEEDED
    step.cleanup(state)
    assert driver.calls == calls_after_run
    assert state.vm is not None


def test_cleanup_without_handle_is_noop() -> None:
    driver = FakeDriver()
    state = _state(driver)
    state.status = BuildStatus.HALTED
    _step().cleanup(state)
    assert driver.calls == []
    assert state.ui.said == []


def test_cleanup_destroy_failure_is_reported_not_raised() -> None:
    driver = FakeDriver()
    state = _state(driver)
    state.vm = FakeVM(name='web01', calls=driver.calls, fail_destroy='gone away')
    state.status = BuildStatus.CANCELLED
    _step().cleanup(state)
    assert state.ui.errors == ['gone away']
    assert driver.calls == ['destroy:web01']
