"""Container capacity planning."""
import random
from typing import List, Optional

from plate_randomizer.models import ContainerKind
from plate_randomizer.solver.observers import RandomizationObserver, resolve_observer


def assign_capacities(
    total_samples: int,
    containers_needed: int,
    sequential_fill: bool,
    container_size: int,
    kind: ContainerKind = ContainerKind.PLATE,
    rng: Optional[random.Random] = None,
    observer: Optional[RandomizationObserver] = None,
) -> List[int]:
    """
    Compute how many samples each container receives.
    
    Args:
        total_samples: Samples to place
        containers_needed: Containers available, usually ceil(n / size)
        sequential_fill: Fill containers to size one by one, the last one
            takes the remainder. Otherwise spread empty slots randomly.
        container_size: Nominal container size
        
    Returns:
        Capacities summing to total_samples. [0] when there are no
        samples or when the samples cannot fit; the latter is reported
        as an error, not raised.
    """
    observer = resolve_observer(observer)
    name = kind.value.lower()
    
    if total_samples == 0:
        return [0]
    
    if total_samples > containers_needed * container_size:
        observer.error(
            f"Total samples ({total_samples}) exceed total {name} capacity "
            f"({containers_needed * container_size})."
        )
        return [0]
    
    if sequential_fill:
        full_containers = total_samples // container_size
        remainder = total_samples % container_size
        capacities = [container_size] * full_containers
        if remainder > 0:
            capacities.append(remainder)
        observer.info(
            f"Sequential {name} fill: {total_samples} samples, {full_containers} full, "
            f"remainder {remainder}, capacities {capacities}"
        )
        return capacities
    
    base = total_samples // containers_needed
    extra = total_samples % containers_needed
    capacities = [base] * containers_needed
    
    indices = list(range(containers_needed))
    (rng or random.Random()).shuffle(indices)
    for i in indices[:extra]:
        capacities[i] += 1
    
    observer.info(
        f"Spread {name} fill: {total_samples} samples over {containers_needed} {name}s, "
        f"base {base}, extra {extra}, capacities {capacities}"
    )
    return capacities
