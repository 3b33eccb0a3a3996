"""Test fixtures for the export pipeline.

Builders and in-memory collaborators live in ``factories.py``.
"""

from __future__ import annotations

import pytest

from factories import ScriptedTransport


@pytest.fixture
def transport() -> ScriptedTransport:
    """CRM transport that acknowledges every payload."""
    return ScriptedTransport()
