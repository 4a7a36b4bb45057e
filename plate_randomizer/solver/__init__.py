"""Allocation engine: capacity planning, distribution, bin packing and placement."""
from plate_randomizer.solver.randomizer import PlateRandomizer, randomize
from plate_randomizer.solver.observers import (
    RandomizationObserver, LoggingObserver, CollectingObserver
)

__all__ = [
    "PlateRandomizer", "randomize",
    "RandomizationObserver", "LoggingObserver", "CollectingObserver",
]
