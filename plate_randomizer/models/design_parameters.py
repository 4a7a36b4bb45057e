"""Randomization parameters data models."""
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import List, Optional
from enum import Enum

from plate_randomizer.config import settings


class PlateType(int, Enum):
    """Plate type enumeration."""
    PLATE_96 = 96
    PLATE_384 = 384
    PLATE_1536 = 1536


class ContainerKind(str, Enum):
    """Level of the two-level container hierarchy."""
    PLATE = "Plate"
    ROW = "Row"


class OverflowPrioritization(str, Enum):
    """Ordering of target containers for overflow samples."""
    BY_CAPACITY = "by_capacity"  # full-size containers first (plates)
    BY_GROUP_BALANCE = "by_group_balance"  # fewest samples of the group first (rows)
    NONE = "none"


class RandomizationAlgorithm(str, Enum):
    """Allocation strategy."""
    BALANCED = "balanced"  # proportional block randomization with spatial refinement
    GREEDY = "greedy"  # row-by-row placement with escalating duplicate tolerance


class RandomizationConfig(BaseModel):
    """Per-run randomization parameters."""
    covariates: List[str]
    algorithm: RandomizationAlgorithm = RandomizationAlgorithm.BALANCED
    num_rows: int = Field(default_factory=lambda: settings.default_rows)
    num_columns: int = Field(default_factory=lambda: settings.default_columns)
    keep_empty_in_last_plate: bool = True
    
    # Repeated measures
    repeated_measures_variable: Optional[str] = None
    treatment_variables: List[str] = []  # empty: balance groups by covariates
    
    # QC / reference samples get their own balance groups
    qc_column: Optional[str] = None
    qc_values: List[str] = []
    
    # Spatial refinement
    optimize: bool = True
    max_optimization_passes: int = Field(default_factory=lambda: settings.optimization_max_passes)
    
    @field_validator("num_rows", "num_columns")
    @classmethod
    def check_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("plate dimensions must be positive")
        return value
    
    @field_validator("covariates")
    @classmethod
    def check_non_empty(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("at least one covariate is required")
        return value
    
    @model_validator(mode="after")
    def check_disjoint_grouping(self) -> "RandomizationConfig":
        if self.repeated_measures_variable and self.repeated_measures_variable in self.treatment_variables:
            raise ValueError(
                f"repeated-measures variable '{self.repeated_measures_variable}' "
                f"cannot also be a treatment variable"
            )
        return self
    
    @model_validator(mode="after")
    def check_algorithm_grouping(self) -> "RandomizationConfig":
        if self.repeated_measures_variable and self.algorithm == RandomizationAlgorithm.GREEDY:
            raise ValueError("repeated measures require the balanced algorithm")
        return self
    
    @classmethod
    def for_plate_type(cls, plate_type: PlateType, covariates: List[str], **kwargs) -> "RandomizationConfig":
        """Create parameters for a standard plate format."""
        rows, cols = PLATE_DIMENSIONS[plate_type.value]
        return cls(covariates=covariates, num_rows=rows, num_columns=cols, **kwargs)
    
    @property
    def plate_size(self) -> int:
        """Number of wells on one plate."""
        return self.num_rows * self.num_columns
    
    @property
    def repeated_measures(self) -> bool:
        """Whether subject groups must stay on one plate."""
        return bool(self.repeated_measures_variable)
    
    def get_treatment_variables(self) -> List[str]:
        """Attributes used for treatment composition of subject groups."""
        return self.treatment_variables or self.covariates


# Plate dimensions constant
PLATE_DIMENSIONS = {
    96: (8, 12),
    384: (16, 24),
    1536: (32, 48),
}
