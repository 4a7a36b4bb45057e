"""Shared fixtures."""
import random

import pytest

from plate_randomizer.models import Sample
from plate_randomizer.solver import CollectingObserver


@pytest.fixture
def rng():
    """Seeded random generator."""
    return random.Random(1234)


@pytest.fixture
def observer():
    """Observer that records every message."""
    return CollectingObserver()


@pytest.fixture
def make_samples():
    """Build samples from (count, metadata) pairs, numbered S0001, S0002, ..."""
    def _make(*counts):
        samples = []
        for count, metadata in counts:
            for _ in range(count):
                samples.append(Sample(name=f"S{len(samples) + 1:04d}", metadata=dict(metadata)))
        return samples
    return _make


@pytest.fixture
def mixed_samples(make_samples):
    """200 samples over 6 treatment/sex groups of uneven size."""
    return make_samples(
        (50, {"Treatment": "Drug", "Sex": "M"}),
        (45, {"Treatment": "Drug", "Sex": "F"}),
        (40, {"Treatment": "Placebo", "Sex": "M"}),
        (35, {"Treatment": "Placebo", "Sex": "F"}),
        (20, {"Treatment": "Vehicle", "Sex": "M"}),
        (10, {"Treatment": "Vehicle", "Sex": "F"}),
    )
