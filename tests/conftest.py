"""
Shared test fixtures and configuration for pytest.
"""

import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

import pytest

# Add src directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from loinc_search.config.config_loader import ENV_OVERRIDES  # noqa: E402
from loinc_search.core.exceptions import EmbeddingProviderError  # noqa: E402
from loinc_search.core.types import LoincCode  # noqa: E402
from loinc_search.providers.base import EmbeddingProvider  # noqa: E402


logger = logging.getLogger(__name__)


# ============================================================================
# Test doubles
# ============================================================================

class FakeEmbeddingProvider(EmbeddingProvider):
    """
    Deterministic in-memory embedding provider.

    Vectors are derived from the text so equal texts embed equally. Records
    every call, and can be told to fail on a given call number (1-based).
    """

    def __init__(self, dimensions: int = 4, fail_on_call: Optional[int] = None,
                 vectors: Optional[Dict[str, List[float]]] = None):
        self.dimensions = dimensions
        self.fail_on_call = fail_on_call
        self.vectors = vectors or {}
        self.calls: List[List[str]] = []

    def embed_texts(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            raise EmbeddingProviderError("simulated outage", provider="fake", status_code=503)
        return [self._vector_for(text) for text in texts]

    def _vector_for(self, text: str) -> List[float]:
        if text in self.vectors:
            return list(self.vectors[text])
        values = [0.0] * self.dimensions
        for i, ch in enumerate(text):
            values[i % self.dimensions] += (ord(ch) % 17) / 10.0
        return values


# ============================================================================
# Pytest hooks
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line("markers", "slow: Tests that take a long time to run")


# ============================================================================
# Fixtures
# ============================================================================

def make_records(count: int) -> List[LoincCode]:
    """Build ``count`` distinct records with predictable codes."""
    return [
        LoincCode(
            code=f"{1000 + i}-{i % 10}",
            display_name=f"Test analyte {i}",
            long_common_name=f"Test analyte {i} [Mass/volume] in Serum",
            short_name=f"Analyte{i}",
            component=f"Analyte {i}",
            property="MCnc",
            time_aspect="Pt",
            system="Ser/Plas",
            scale_type="Qn",
            class_name="CHEM",
            version_last_changed="2.77",
        )
        for i in range(count)
    ]


@pytest.fixture
def sample_records() -> List[LoincCode]:
    """Fixture providing ten distinct records."""
    return make_records(10)


@pytest.fixture
def fake_provider() -> FakeEmbeddingProvider:
    """Fixture providing a deterministic embedding provider."""
    return FakeEmbeddingProvider()


@pytest.fixture(autouse=True)
def clean_loinc_env(monkeypatch):
    """Keep developer environment settings out of the tests."""
    for name in ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
