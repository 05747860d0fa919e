"""Fixtures shared by the unit and integration suites."""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from hubbub.observability.logging import reset_logging


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    # setup_logging binds stderr handlers; capture streams die with the test.
    yield
    reset_logging()
