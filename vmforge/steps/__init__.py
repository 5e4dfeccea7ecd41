"""Pipeline steps."""

from __future__ import annotations

from .create import CreateVMStep

__all__ = ['CreateVMStep']
