"""Best-fit-by-balance bin packing of repeated-measures groups onto plates."""
from typing import Dict, List, Mapping, Optional, Sequence

from plate_randomizer.errors import GroupPlacementError
from plate_randomizer.models import RepeatedMeasuresGroup
from plate_randomizer.solver.observers import RandomizationObserver, resolve_observer


def treatment_totals(groups: Sequence[RepeatedMeasuresGroup]) -> Dict[str, int]:
    """Sum the treatment compositions of all groups."""
    totals: Dict[str, int] = {}
    for group in groups:
        for key, count in group.treatment_composition.items():
            totals[key] = totals.get(key, 0) + count
    return totals


def balance_score(
    group: RepeatedMeasuresGroup,
    plate_composition: Mapping[str, int],
    plate_count: int,
    global_counts: Mapping[str, int],
    total_samples: int,
) -> float:
    """
    Deviation from global treatment proportions if group joined the plate.
    
    Sum over every global treatment key of |hypothetical - expected|, where
    expected scales the global proportion to the plate's size after adding
    the group. Lower is better.
    """
    if total_samples == 0:
        return 0.0
    
    hypothetical_size = plate_count + group.size
    score = 0.0
    for key, global_count in global_counts.items():
        expected = global_count / total_samples * hypothetical_size
        actual = plate_composition.get(key, 0) + group.treatment_composition.get(key, 0)
        score += abs(actual - expected)
    return score


def pack_groups_to_plates(
    groups: Sequence[RepeatedMeasuresGroup],
    plate_capacities: Sequence[int],
    observer: Optional[RandomizationObserver] = None,
) -> Dict[int, List[RepeatedMeasuresGroup]]:
    """
    Assign whole subject groups to plates.
    
    Groups are placed largest first. Each goes to the plate with room for
    it and the lowest balance score; ties go to the lower plate index.
    
    Args:
        groups: Repeated-measures groups with treatment compositions
        plate_capacities: Capacity of each plate
        
    Returns:
        Plate index -> groups assigned to it
        
    Raises:
        GroupPlacementError: No plate has room for a group
    """
    observer = resolve_observer(observer)
    global_counts = treatment_totals(groups)
    total_samples = sum(global_counts.values())
    
    observer.info(
        f"Distributing {len(groups)} groups ({total_samples} samples) to "
        f"{len(plate_capacities)} plates with capacities {list(plate_capacities)}"
    )
    
    plates: Dict[int, List[RepeatedMeasuresGroup]] = {i: [] for i in range(len(plate_capacities))}
    counts = [0] * len(plate_capacities)
    compositions: List[Dict[str, int]] = [{} for _ in plate_capacities]
    
    for group in sorted(groups, key=lambda g: g.size, reverse=True):
        best_index = None
        best_score = float("inf")
        
        for index, capacity in enumerate(plate_capacities):
            if capacity - counts[index] < group.size:
                continue
            score = balance_score(group, compositions[index], counts[index], global_counts, total_samples)
            if score < best_score:
                best_score = score
                best_index = index
        
        if best_index is None:
            usage = ", ".join(f"{count}/{cap}" for count, cap in zip(counts, plate_capacities))
            raise GroupPlacementError(
                f"Cannot fit repeated-measures group '{group.subject_id}' ({group.size} samples) "
                f"in any available plate. This may indicate insufficient total capacity or "
                f"the group is too large for the plate size. "
                f"Current plate capacities: {', '.join(str(c) for c in plate_capacities)}. "
                f"Current plate usage: {usage}.",
                subject_id=group.subject_id,
                size=group.size,
            )
        
        plates[best_index].append(group)
        counts[best_index] += group.size
        for key, count in group.treatment_composition.items():
            compositions[best_index][key] = compositions[best_index].get(key, 0) + count
    
    for index, capacity in enumerate(plate_capacities):
        fill = counts[index] / capacity * 100 if capacity else 0.0
        observer.info(
            f"Plate {index + 1}: {len(plates[index])} groups, {counts[index]} samples ({fill:.1f}% full)"
        )
    
    return plates
