"""Create or replace a build VM as a rollback-safe pipeline step."""

from __future__ import annotations

__version__ = '0.1.0'
