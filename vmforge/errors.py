"""Project-specific exception types."""

from __future__ import annotations


class VMForgeError(RuntimeError):
    """Base error for domain-level vmforge failures."""


class ConfigError(VMForgeError):
    """Raised when a build file fails validation.

    All problems found are kept on ``errors`` so they can be reported in one
    pass.
    """

    def __init__(self, errors: list[Exception], source: str = ''):
        self.errors = list(errors)
        self.source = source
        where = f' in {source}' if source else ''
        lines = [f'{len(self.errors)} configuration error(s){where}:']
        lines += [f'  - {err}' for err in self.errors]
        super().__init__('\n'.join(lines))


class DriverError(VMForgeError):
    """Raised by drivers for failed hypervisor operations."""


class VMNotFoundError(DriverError):
    """Raised by a driver lookup when no VM/template has the given name."""
