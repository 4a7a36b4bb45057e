"""Greedy spatial de-clustering of samples within rows, plus swap refinement."""
import random
from typing import List, Optional, Sequence, Set, Tuple

from plate_randomizer.models import PlateGrid, PlateSpatialQuality, Sample, SpatialQuality
from plate_randomizer.solver.containers import shuffled
from plate_randomizer.solver.grouping import KeyFunction
from plate_randomizer.solver.observers import RandomizationObserver, resolve_observer

# Cluster score weights
LEFT_PENALTY = 10
RIGHT_PENALTY = 10
ABOVE_PENALTY = 8
CROSS_ROW_PENALTY = 15  # column 0 vs. previous row's last column

KeyGrid = List[List[Optional[str]]]
Position = Tuple[int, int]


def key_grid(plate: PlateGrid, key_of: KeyFunction) -> KeyGrid:
    """Covariate key of every occupied well, None for empty wells."""
    return [[key_of(s) if s is not None else None for s in row] for row in plate]


def cluster_score(keys: KeyGrid, row: int, col: int, key: str, columns: int) -> int:
    """
    Penalty for a sample with the given key sitting at (row, col).
    
    Lower is better. Only left, right, above and the cross-row wrap are
    looked at: rows are filled top to bottom, so below is still empty.
    """
    score = 0
    
    if col > 0 and keys[row][col - 1] == key:
        score += LEFT_PENALTY
    
    if col < columns - 1 and keys[row][col + 1] == key:
        score += RIGHT_PENALTY
    
    if row > 0 and keys[row - 1][col] == key:
        score += ABOVE_PENALTY
    
    if col == 0 and row > 0 and keys[row - 1][columns - 1] == key:
        score += CROSS_ROW_PENALTY
    
    return score


def place_row_greedily(
    samples: Sequence[Sample],
    plate: PlateGrid,
    row_index: int,
    columns: int,
    key_of: KeyFunction,
    rng: Optional[random.Random] = None,
    observer: Optional[RandomizationObserver] = None,
) -> None:
    """
    Fill the first len(samples) columns of a plate row, in place.
    
    Samples are shuffled, then each goes to a random column among the
    free ones with the lowest cluster score. Occupied columns then trade
    samples while a swap lowers the row's score, so empty wells stay at
    the end of the row.
    """
    if not samples:
        return
    
    rng = rng or random.Random()
    observer = resolve_observer(observer)
    keys = key_grid(plate, key_of)
    available = list(range(min(columns, len(samples))))
    
    for sample in shuffled(samples, rng):
        if not available:
            observer.error(f"Row {row_index + 1}: no free column left for sample {sample.name}")
            break
        
        key = key_of(sample)
        scores = [(col, cluster_score(keys, row_index, col, key, columns)) for col in available]
        best = min(score for _, score in scores)
        col = rng.choice([c for c, score in scores if score == best])
        
        plate[row_index][col] = sample
        keys[row_index][col] = key
        available.remove(col)
    
    _improve_row(plate, keys, row_index, min(columns, len(samples)))


def _improve_row(plate: PlateGrid, keys: KeyGrid, row_index: int, filled: int) -> int:
    """Swap samples within the first filled columns of one row while the score drops."""
    rows, columns = len(keys), len(keys[row_index])
    positions = [(row_index, c) for c in range(filled)]
    swaps = 0
    improved = True
    
    while improved:
        improved = False
        for i, p in enumerate(positions):
            for q in positions[i + 1:]:
                if keys[p[0]][p[1]] == keys[q[0]][q[1]]:
                    continue
                affected = set(_dependents(p, rows, columns)) | set(_dependents(q, rows, columns))
                before = _local_score(keys, affected, columns)
                _swap(keys, p, q)
                if _local_score(keys, affected, columns) < before:
                    _swap(plate, p, q)
                    swaps += 1
                    improved = True
                else:
                    _swap(keys, p, q)
    
    return swaps


def _dependents(position: Position, rows: int, columns: int) -> List[Position]:
    """Wells whose cluster score reads the given well, including itself."""
    row, col = position
    affected = [position]
    if col + 1 < columns:
        affected.append((row, col + 1))
    if col > 0:
        affected.append((row, col - 1))
    if row + 1 < rows:
        affected.append((row + 1, col))
        if col == columns - 1:
            affected.append((row + 1, 0))
    return affected


def _local_score(keys: KeyGrid, positions: Set[Position], columns: int) -> int:
    total = 0
    for row, col in positions:
        key = keys[row][col]
        if key is not None:
            total += cluster_score(keys, row, col, key, columns)
    return total


def _swap(grid: list, p: Position, q: Position) -> None:
    grid[p[0]][p[1]], grid[q[0]][q[1]] = grid[q[0]][q[1]], grid[p[0]][p[1]]


def clustered_wells(keys: KeyGrid, rows: int, columns: int) -> List[Position]:
    """Occupied wells with a non-zero cluster score, in row-major order."""
    return [
        (r, c) for r in range(rows) for c in range(columns)
        if keys[r][c] is not None and cluster_score(keys, r, c, keys[r][c], columns) > 0
    ]


def optimize_plate(
    plate: PlateGrid,
    key_of: KeyFunction,
    rows: int,
    columns: int,
    max_passes: int = 100,
) -> int:
    """
    Swap occupied wells of one plate while that lowers the plate score.
    
    Each pass takes every well that is currently clustered and tries it
    against each occupied well holding a different key, keeping a swap
    only when it strictly lowers the summed cluster score. Stops after
    max_passes or after a pass without a swap.
    
    Returns:
        Number of swaps kept
    """
    keys = key_grid(plate, key_of)
    filled = [(r, c) for r in range(rows) for c in range(columns) if plate[r][c] is not None]
    swaps = 0
    
    for _ in range(max_passes):
        improved = False
        for p in clustered_wells(keys, rows, columns):
            for q in filled:
                if keys[p[0]][p[1]] == keys[q[0]][q[1]]:
                    continue
                affected = set(_dependents(p, rows, columns)) | set(_dependents(q, rows, columns))
                before = _local_score(keys, affected, columns)
                _swap(keys, p, q)
                after = _local_score(keys, affected, columns)
                if after < before:
                    _swap(plate, p, q)
                    swaps += 1
                    improved = True
                    break
                else:
                    _swap(keys, p, q)
        if not improved:
            break
    
    return swaps


def global_optimize(
    plates: Sequence[PlateGrid],
    key_of: KeyFunction,
    rows: int,
    columns: int,
    max_passes: int = 100,
    observer: Optional[RandomizationObserver] = None,
) -> int:
    """
    Run optimize_plate on every plate in index order.
    
    Wells only ever trade occupants within a plate, so plate and row
    counts are unchanged.
    
    Returns:
        Total number of swaps across all plates
    """
    observer = resolve_observer(observer)
    total = 0
    for index, plate in enumerate(plates):
        swaps = optimize_plate(plate, key_of, rows, columns, max_passes)
        if swaps:
            observer.info(f"Plate {index + 1}: {swaps} improving swaps")
        total += swaps
    observer.info(f"Global optimization made {total} swaps across {len(plates)} plates")
    return total


def analyze_plate_spatial_quality(
    plate: PlateGrid,
    key_of: KeyFunction,
    rows: int,
    columns: int,
    plate_index: int = 0,
) -> PlateSpatialQuality:
    """Count same-key neighbours: right, below, and last column to next row's first."""
    keys = key_grid(plate, key_of)
    quality = PlateSpatialQuality(plate_index=plate_index)
    
    for row in range(rows):
        for col in range(columns):
            key = keys[row][col]
            if key is None:
                continue
            if col < columns - 1 and keys[row][col + 1] == key:
                quality.horizontal_clusters += 1
            if row < rows - 1 and keys[row + 1][col] == key:
                quality.vertical_clusters += 1
            if col == columns - 1 and row < rows - 1 and keys[row + 1][0] == key:
                quality.cross_row_clusters += 1
    
    return quality


def analyze_spatial_quality(
    plates: Sequence[PlateGrid],
    key_of: KeyFunction,
    rows: int,
    columns: int,
) -> SpatialQuality:
    """Clustering counts for each plate."""
    return SpatialQuality(plates=[
        analyze_plate_spatial_quality(plate, key_of, rows, columns, plate_index=i)
        for i, plate in enumerate(plates)
    ])
