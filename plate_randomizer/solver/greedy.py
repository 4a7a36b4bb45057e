"""Row-by-row greedy randomization with an escalating duplicate tolerance."""
import math
import random
from typing import Dict, List, Optional, Sequence, Tuple

from plate_randomizer.models import ContainerKind, PlateGrid, Sample
from plate_randomizer.solver.containers import Container, make_containers, shuffled
from plate_randomizer.solver.grouping import KeyFunction
from plate_randomizer.solver.observers import RandomizationObserver, resolve_observer


def first_row_within(rows: Sequence[Container], key: str, tolerance: int) -> Optional[Container]:
    """First row with a free well holding at most tolerance samples of key."""
    for row in rows:
        if not row.is_full() and row.group_counts[key] <= tolerance:
            return row
    return None


def greedy_randomize(
    samples: Sequence[Sample],
    key_of: KeyFunction,
    rows: int,
    columns: int,
    rng: Optional[random.Random] = None,
    observer: Optional[RandomizationObserver] = None,
) -> Tuple[List[PlateGrid], Dict[int, List[Sample]]]:
    """
    Place samples one at a time into the first row that tolerates them.

    Samples are shuffled, then each goes to the first non-full row (plate
    by plate, top to bottom) holding no sample of its key. When no row
    qualifies the tolerance for same-key samples per row is raised by one
    until one does, so each group spreads evenly over the rows of all
    plates. Each row is finally shuffled across all its wells, empty ones
    included.

    Returns:
        Plate grids and the plate index -> samples mapping
    """
    rng = rng or random.Random()
    observer = resolve_observer(observer)

    plates_needed = math.ceil(len(samples) / (rows * columns))
    row_containers = make_containers([columns] * (plates_needed * rows), ContainerKind.ROW)
    highest_tolerance = 0

    for sample in shuffled(samples, rng):
        key = key_of(sample)
        tolerance = 0
        target = first_row_within(row_containers, key, tolerance)
        while target is None:
            tolerance += 1
            target = first_row_within(row_containers, key, tolerance)
        target.add(sample, key)
        highest_tolerance = max(highest_tolerance, tolerance)

    if highest_tolerance:
        observer.info(f"Greedy placement allowed up to {highest_tolerance + 1} samples of one group per row")

    plates: List[PlateGrid] = []
    plate_assignments: Dict[int, List[Sample]] = {}
    for p in range(plates_needed):
        plate = []
        for row in row_containers[p * rows:(p + 1) * rows]:
            wells = row.samples + [None] * row.remaining
            rng.shuffle(wells)
            plate.append(wells)
        plates.append(plate)
        plate_assignments[p] = [s for row in plate for s in row if s is not None]

    observer.info(f"Greedy placement: {len(samples)} samples on {plates_needed} plates")
    return plates, plate_assignments
