"""Plate Randomizer: balanced sample placement on microplates."""
from plate_randomizer.solver import PlateRandomizer
from plate_randomizer.models import RandomizationConfig, RandomizationResult, Sample

__all__ = ["PlateRandomizer", "RandomizationConfig", "RandomizationResult", "Sample"]
