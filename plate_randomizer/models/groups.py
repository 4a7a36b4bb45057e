"""Repeated-measures group data models."""
from pydantic import BaseModel
from typing import Dict, List

from plate_randomizer.models.sample import Sample


class RepeatedMeasuresGroup(BaseModel):
    """Samples from one subject that must stay on the same plate."""
    subject_id: str  # real subject value or generated "__singleton_<n>"
    samples: List[Sample]
    treatment_composition: Dict[str, int] = {}  # treatment key -> count
    is_singleton: bool = False
    
    @property
    def size(self) -> int:
        return len(self.samples)


class GroupValidation(BaseModel):
    """Outcome of repeated-measures group validation."""
    errors: List[str] = []
    warnings: List[str] = []
    
    @property
    def is_valid(self) -> bool:
        return not self.errors


class GroupSizeDistribution(BaseModel):
    """Histogram of repeated-measures group sizes."""
    singletons: int = 0
    small: int = 0  # 2-5 samples
    medium: int = 0  # 6-15 samples
    large: int = 0  # 16+ samples
