"""Three-phase proportional distribution of covariate groups into containers."""
import math
import random
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from plate_randomizer.errors import ExpectedMinimumError, InfeasibleCapacityError
from plate_randomizer.models import (
    ConstraintViolation, ContainerKind, OverflowPrioritization, Sample
)
from plate_randomizer.solver.containers import (
    Container, assignments, available_containers, fill_round_robin, make_containers, shuffled
)
from plate_randomizer.solver.constraints import severity_for
from plate_randomizer.solver.grouping import KeyFunction
from plate_randomizer.solver.observers import RandomizationObserver, resolve_observer

# container index -> group key -> minimum sample count
ExpectedMinimums = Dict[int, Dict[str, int]]


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values."""
    return int(math.floor(value + 0.5))


def calculate_expected_minimums(
    capacities: Sequence[int],
    groups: Mapping[str, Sequence[Sample]],
    full_capacity: int,
    kind: ContainerKind = ContainerKind.PLATE,
    observer: Optional[RandomizationObserver] = None,
) -> ExpectedMinimums:
    """
    Minimum count of each group every container should receive.
    
    The share is floor(group_size / containers) scaled by the container's
    capacity relative to a full container (exactly 1 with one container).
    
    Raises:
        InfeasibleCapacityError: total samples exceed total capacity
        ExpectedMinimumError: a container's minimums exceed its capacity
    """
    observer = resolve_observer(observer)
    name = kind.value.lower()
    num_containers = len(capacities)
    total_samples = sum(len(samples) for samples in groups.values())
    total_capacity = sum(capacities)
    
    if total_samples > total_capacity:
        raise InfeasibleCapacityError(
            f"Cannot distribute {total_samples} samples across {name}s with total capacity "
            f"{total_capacity}. Total samples exceed available capacity by "
            f"{total_samples - total_capacity}."
        )
    
    expected: ExpectedMinimums = {}
    for index, capacity in enumerate(capacities):
        ratio = 1.0 if num_containers == 1 else capacity / full_capacity
        expected[index] = {
            key: round_half_up((len(samples) // num_containers) * ratio)
            for key, samples in groups.items()
        }
        block_total = sum(expected[index].values())
        if block_total > capacity:
            raise ExpectedMinimumError(
                f"{kind.value} {index + 1} expected minimums ({block_total}) exceed its "
                f"capacity ({capacity}). This indicates an impossible distribution scenario."
            )
        observer.info(f"{kind.value} {index + 1}: capacity {capacity}, expected minimum total {block_total}")
    
    return expected


def distribute_to_containers(
    groups: Mapping[str, Sequence[Sample]],
    capacities: Sequence[int],
    full_capacity: int,
    prioritization: OverflowPrioritization = OverflowPrioritization.NONE,
    kind: ContainerKind = ContainerKind.PLATE,
    expected_minimums: Optional[ExpectedMinimums] = None,
    rng: Optional[random.Random] = None,
    observer: Optional[RandomizationObserver] = None,
) -> Dict[int, List[Sample]]:
    """
    Spread covariate groups over capacity-bounded containers.
    
    Phase 1 seeds every container with its proportional share of each
    group. Phase 2A places groups too small to seed (largest first) on
    the containers with most room. Phase 2B places the leftovers of
    seeded groups (largest first) in the order given by prioritization.
    
    Args:
        groups: Covariate key -> samples
        capacities: Capacity of each container
        full_capacity: Nominal size of a full container
        prioritization: Target ordering for Phase 2B
        kind: Plate or row, used in messages
        expected_minimums: Precomputed Phase 1 shares, if any
        
    Returns:
        Container index -> assigned samples
    """
    rng = rng or random.Random()
    observer = resolve_observer(observer)
    containers = make_containers(capacities, kind)
    
    observer.info(
        f"Distributing {sum(len(s) for s in groups.values())} samples across "
        f"{len(containers)} {kind.value.lower()}s with capacities {list(capacities)}"
    )
    
    unplaced, overflow = _seed_proportionally(
        groups, containers, full_capacity, expected_minimums, rng, observer
    )
    _place_unplaced_groups(unplaced, containers, observer)
    _place_overflow_groups(overflow, containers, prioritization, full_capacity, rng, observer)
    
    return assignments(containers)


def _seed_proportionally(
    groups: Mapping[str, Sequence[Sample]],
    containers: List[Container],
    full_capacity: int,
    expected_minimums: Optional[ExpectedMinimums],
    rng: random.Random,
    observer: RandomizationObserver,
) -> Tuple[Dict[str, List[Sample]], Dict[str, List[Sample]]]:
    """Phase 1. Returns (unplaced groups, overflow samples) keyed by group."""
    unplaced: Dict[str, List[Sample]] = {}
    overflow: Dict[str, List[Sample]] = {}
    num_containers = len(containers)
    
    for key, samples in groups.items():
        pool = shuffled(samples, rng)
        base = len(pool) // num_containers
        next_index = 0
        
        if base > 0:
            for container in containers:
                minimums = (expected_minimums or {}).get(container.index, {})
                if key in minimums:
                    share = minimums[key]
                else:
                    share = round_half_up(base * (container.capacity / full_capacity))
                
                to_place = min(share, container.remaining)
                if to_place < share:
                    observer.error(
                        f"Phase 1: {container.label()} cannot accommodate proportional {share} "
                        f"samples for group {key}. Only {to_place} can be placed."
                    )
                
                for _ in range(to_place):
                    if next_index >= len(pool):
                        break
                    container.add(pool[next_index], key)
                    next_index += 1
        
        leftover = pool[next_index:]
        if leftover:
            if base == 0:
                unplaced[key] = leftover
            else:
                overflow[key] = leftover
    
    return unplaced, overflow


def _place_unplaced_groups(
    unplaced: Dict[str, List[Sample]],
    containers: List[Container],
    observer: RandomizationObserver,
) -> None:
    """Phase 2A: most room first, round-robin."""
    for key, samples in sorted(unplaced.items(), key=lambda item: len(item[1]), reverse=True):
        targets = available_containers(containers)
        if not targets:
            observer.error(f"Phase 2A: No available capacity for unplaced group {key}")
            continue
        
        targets.sort(key=lambda c: c.remaining, reverse=True)
        placed = fill_round_robin(samples, key, targets)
        if placed < len(samples):
            observer.error(
                f"Phase 2A: Failed to place {len(samples) - placed} unplaced samples from group {key}"
            )


def _place_overflow_groups(
    overflow: Dict[str, List[Sample]],
    containers: List[Container],
    prioritization: OverflowPrioritization,
    full_capacity: int,
    rng: random.Random,
    observer: RandomizationObserver,
) -> None:
    """Phase 2B: round-robin in the prioritized order."""
    for key, samples in sorted(overflow.items(), key=lambda item: len(item[1]), reverse=True):
        targets = available_containers(containers)
        if not targets:
            observer.error(f"Phase 2B: No available capacity for overflow group {key}")
            continue
        
        ordered = prioritize_containers(targets, key, prioritization, full_capacity, rng)
        placed = fill_round_robin(samples, key, ordered)
        if placed < len(samples):
            observer.error(
                f"Phase 2B: Failed to place {len(samples) - placed} overflow samples from group {key}"
            )


def prioritize_containers(
    targets: Sequence[Container],
    group_key: str,
    prioritization: OverflowPrioritization,
    full_capacity: int,
    rng: random.Random,
) -> List[Container]:
    """Order candidate containers for overflow samples of one group."""
    if prioritization == OverflowPrioritization.BY_CAPACITY:
        full = [c for c in targets if c.capacity == full_capacity]
        partial = [c for c in targets if c.capacity != full_capacity]
        return shuffled(full, rng) + shuffled(partial, rng)
    
    if prioritization == OverflowPrioritization.BY_GROUP_BALANCE:
        # stable sort keeps index order among ties
        return sorted(targets, key=lambda c: c.group_counts[group_key])
    
    return shuffled(targets, rng)


def validate_distribution(
    container_samples: Mapping[int, Sequence[Sample]],
    group_key_of: KeyFunction,
    expected_minimums: ExpectedMinimums,
    kind: ContainerKind = ContainerKind.PLATE,
    observer: Optional[RandomizationObserver] = None,
) -> List[ConstraintViolation]:
    """
    Flag containers holding fewer samples of a group than expected.
    
    Diagnostic only: the shortfall can legitimately happen when Phase 1
    shares collide with capacities.
    """
    observer = resolve_observer(observer)
    violations = []
    
    for index, samples in container_samples.items():
        counts: Dict[str, int] = {}
        for sample in samples:
            key = group_key_of(sample)
            counts[key] = counts.get(key, 0) + 1
        
        for key, minimum in expected_minimums.get(index, {}).items():
            actual = counts.get(key, 0)
            if actual < minimum:
                message = (
                    f"{kind.value} {index + 1} has only {actual} samples for group {key}, "
                    f"expected minimum {minimum}"
                )
                observer.error(f"Validation: {message}")
                violations.append(ConstraintViolation(
                    constraint_name="proportional_balance",
                    description=message,
                    severity=severity_for("proportional_balance"),
                ))
    
    return violations
