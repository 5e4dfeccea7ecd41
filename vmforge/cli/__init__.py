"""CLI package exports for top-level command entry points."""

from __future__ import annotations

from .main import VMForgeModalCLI, main

__all__ = ['VMForgeModalCLI', 'main']
