"""Callstack test configuration and fixtures."""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Iterator

import pytest

# Add src to path for imports
SRC_DIR = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(SRC_DIR))

from callstack.registry import AnnotationKeyRegistry, ServiceTypeRegistry  # noqa: E402


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the fixtures directory path."""
    return Path(__file__).parent.parent / "fixtures"


@pytest.fixture
def sample_tree_path(fixtures_dir: Path) -> Path:
    """Return the path to the checkout call tree document."""
    return fixtures_dir / "trees" / "order_checkout.yaml"


@pytest.fixture
def extra_registry_path(fixtures_dir: Path) -> Path:
    """Return the path to the extra registry YAML."""
    return fixtures_dir / "registries" / "extra.yaml"


@pytest.fixture
def service_types() -> ServiceTypeRegistry:
    return ServiceTypeRegistry.default()


@pytest.fixture
def annotation_keys() -> AnnotationKeyRegistry:
    return AnnotationKeyRegistry.default()


@pytest.fixture(autouse=True)
def reset_callstack_logging() -> Iterator[None]:
    """Drop handlers installed by configure_logging so they don't outlive capsys streams."""
    yield
    logger = logging.getLogger("callstack")
    for handler in [h for h in logger.handlers if getattr(h, "_callstack_handler", False)]:
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
