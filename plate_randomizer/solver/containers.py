"""Capacity-bounded containers shared by the plate and row levels."""
import random
from collections import Counter
from typing import Dict, List, Optional, Sequence

from plate_randomizer.models import ContainerKind, Sample


class Container:
    """A plate or a row: an index, a capacity and its occupants."""
    
    def __init__(self, index: int, capacity: int, kind: ContainerKind = ContainerKind.PLATE):
        self.index = index
        self.capacity = capacity
        self.kind = kind
        self.samples: List[Sample] = []
        self.group_counts: Counter = Counter()
    
    @property
    def count(self) -> int:
        return len(self.samples)
    
    @property
    def remaining(self) -> int:
        return self.capacity - len(self.samples)
    
    def is_full(self) -> bool:
        return len(self.samples) >= self.capacity
    
    def add(self, sample: Sample, group_key: str) -> None:
        """Place a sample. Callers check capacity first."""
        if self.is_full():
            raise ValueError(f"{self.label()} is full ({self.capacity} samples)")
        self.samples.append(sample)
        self.group_counts[group_key] += 1
    
    def label(self) -> str:
        return f"{self.kind.value} {self.index + 1}"
    
    def __repr__(self) -> str:
        return f"Container({self.label()}, {self.count}/{self.capacity})"


def make_containers(capacities: Sequence[int], kind: ContainerKind) -> List[Container]:
    """Create one empty container per capacity."""
    return [Container(i, capacity, kind) for i, capacity in enumerate(capacities)]


def available_containers(containers: Sequence[Container]) -> List[Container]:
    """Containers that can still take a sample, in index order."""
    return [c for c in containers if c.remaining > 0]


def fill_round_robin(
    samples: Sequence[Sample],
    group_key: str,
    ordered: Sequence[Container],
) -> int:
    """
    Deal samples over containers in the given order, one at a time.
    
    A container that fills up leaves the rotation.
    
    Returns:
        Number of samples placed
    """
    rotation = list(ordered)
    placed = 0
    position = 0
    
    while placed < len(samples) and rotation:
        position %= len(rotation)
        container = rotation[position]
        if container.is_full():
            rotation.pop(position)
            continue
        container.add(samples[placed], group_key)
        placed += 1
        position += 1
    
    return placed


def assignments(containers: Sequence[Container]) -> Dict[int, List[Sample]]:
    """Index -> occupant list."""
    return {c.index: list(c.samples) for c in containers}


def shuffled(items: Sequence, rng: Optional[random.Random] = None) -> list:
    """Return a shuffled copy."""
    copy = list(items)
    (rng or random.Random()).shuffle(copy)
    return copy
