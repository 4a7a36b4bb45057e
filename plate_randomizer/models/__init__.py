"""Data models for Plate Randomizer."""
from plate_randomizer.models.sample import Sample
from plate_randomizer.models.design_parameters import (
    RandomizationConfig,
    PlateType,
    ContainerKind,
    OverflowPrioritization,
    RandomizationAlgorithm,
    PLATE_DIMENSIONS,
)
from plate_randomizer.models.groups import (
    RepeatedMeasuresGroup,
    GroupValidation,
    GroupSizeDistribution,
)
from plate_randomizer.models.plate_layout import (
    PlateGrid,
    WellPosition,
    ConstraintViolation,
    PlateSpatialQuality,
    SpatialQuality,
    RepeatedMeasuresQuality,
    RandomizationResult,
    SolveStatus,
    SolveResult,
    format_position,
)

__all__ = [
    "Sample",
    "RandomizationConfig", "PlateType", "ContainerKind", "OverflowPrioritization",
    "RandomizationAlgorithm", "PLATE_DIMENSIONS",
    "RepeatedMeasuresGroup", "GroupValidation", "GroupSizeDistribution",
    "PlateGrid", "WellPosition", "ConstraintViolation", "PlateSpatialQuality", "SpatialQuality",
    "RepeatedMeasuresQuality", "RandomizationResult", "SolveStatus", "SolveResult", "format_position",
]
