"""Provider integrations (language-model completion services)."""
from __future__ import annotations

from . import llm

__all__ = ["llm"]
