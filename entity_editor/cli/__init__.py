"""Command line interface (``python -m entity_editor.cli`` / ``entity-editor``)."""

from .__main__ import main

__all__ = [
    "main",
]
