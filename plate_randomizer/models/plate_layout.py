"""Plate layout data models."""
from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from enum import Enum

from plate_randomizer.models.sample import Sample
from plate_randomizer.models.groups import GroupSizeDistribution, RepeatedMeasuresGroup

# plates[plate][row][column]
PlateGrid = List[List[Optional[Sample]]]


class WellPosition(BaseModel):
    """A position on one of the plates."""
    plate: int
    row: int
    col: int
    
    def label(self) -> str:
        """Format as e.g. "P1:A01"."""
        return f"P{self.plate + 1}:{format_position(self.row, self.col)}"


class ConstraintViolation(BaseModel):
    """Constraint violation details."""
    constraint_name: str
    description: str
    severity: str  # "error" or "warning"
    affected_wells: List[str] = []


class PlateSpatialQuality(BaseModel):
    """Same-key adjacency counts on one plate."""
    plate_index: int
    horizontal_clusters: int = 0
    vertical_clusters: int = 0
    cross_row_clusters: int = 0
    
    @property
    def total_clusters(self) -> int:
        return self.horizontal_clusters + self.vertical_clusters + self.cross_row_clusters


class SpatialQuality(BaseModel):
    """Same-key adjacency counts across all plates."""
    plates: List[PlateSpatialQuality] = []
    
    @property
    def total_clusters(self) -> int:
        return sum(p.total_clusters for p in self.plates)


class RepeatedMeasuresQuality(BaseModel):
    """Counters describing a repeated-measures run."""
    constraints_satisfied: bool = True
    constraint_violations: int = 0
    plate_group_counts: List[int] = []
    group_size_distribution: GroupSizeDistribution = Field(default_factory=GroupSizeDistribution)


class RandomizationResult(BaseModel):
    """Final assignment of samples to plates and wells."""
    plates: List[PlateGrid] = []
    plate_assignments: Dict[int, List[Sample]] = {}
    repeated_measures_groups: Optional[List[RepeatedMeasuresGroup]] = None
    repeated_measures_quality: Optional[RepeatedMeasuresQuality] = None
    violations: List[ConstraintViolation] = []
    warnings: List[str] = []
    clusters_before_optimization: int = 0
    clusters_after_optimization: int = 0
    optimization_swaps: int = 0
    
    @property
    def num_plates(self) -> int:
        return len(self.plates)
    
    def find_sample(self, name: str) -> Optional[WellPosition]:
        """Find the position of a sample by name."""
        for p, plate in enumerate(self.plates):
            for r, row in enumerate(plate):
                for c, sample in enumerate(row):
                    if sample is not None and sample.name == name:
                        return WellPosition(plate=p, row=r, col=c)
        return None


class SolveStatus(str, Enum):
    """Solve status enumeration."""
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class SolveResult(BaseModel):
    """Service-level outcome of a randomization request."""
    status: SolveStatus
    result: Optional[RandomizationResult] = None
    violations: List[ConstraintViolation] = []
    solve_time_ms: int = 0
    message: Optional[str] = None


def format_position(row: int, col: int) -> str:
    """Format a 0-based row/column as a well name, e.g. (0, 0) -> "A01"."""
    return f"{chr(ord('A') + row)}{col + 1:02d}"
