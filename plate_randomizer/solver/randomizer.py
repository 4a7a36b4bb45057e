"""Plate randomizer: balanced assignment of samples to plates, rows and wells."""
import math
import random
from collections import Counter
from typing import Dict, List, Optional, Sequence, Tuple

from plate_randomizer.errors import (
    ConstraintCheckError, GroupValidationError, InfeasibleCapacityError
)
from plate_randomizer.models import (
    ConstraintViolation, ContainerKind, GroupSizeDistribution, OverflowPrioritization,
    PlateGrid, RandomizationAlgorithm, RandomizationConfig, RandomizationResult,
    RepeatedMeasuresGroup, RepeatedMeasuresQuality, Sample
)
from plate_randomizer.solver.bin_packing import pack_groups_to_plates
from plate_randomizer.solver.capacity import assign_capacities
from plate_randomizer.solver.distribution import (
    calculate_expected_minimums, distribute_to_containers, validate_distribution
)
from plate_randomizer.solver.greedy import greedy_randomize
from plate_randomizer.solver.grouping import (
    build_covariate_groups, build_repeated_measures_groups, has_subject_id,
    key_function, validate_groups
)
from plate_randomizer.solver.observers import RandomizationObserver, resolve_observer
from plate_randomizer.solver.spatial import (
    analyze_spatial_quality, global_optimize, place_row_greedily
)


class PlateRandomizer:
    """Balanced block randomization with optional repeated-measures grouping."""

    def __init__(
        self,
        config: RandomizationConfig,
        rng: Optional[random.Random] = None,
        observer: Optional[RandomizationObserver] = None,
    ):
        self.config = config
        self.rng = rng or random.Random()
        self.observer = resolve_observer(observer)

        self.rows = config.num_rows
        self.cols = config.num_columns
        self.plate_size = config.plate_size
        self.key_of = key_function(config.covariates, config.qc_column, config.qc_values)

    def randomize(self, samples: Sequence[Sample]) -> RandomizationResult:
        """
        Assign every sample to a plate, row and column.

        Raises:
            InfeasibleCapacityError: Samples cannot fit the planned plates
            GroupValidationError: A subject group is larger than a plate
            GroupPlacementError: A subject group fits on no plate
            ConstraintCheckError: A sample was lost, duplicated or split off
        """
        samples = list(samples)
        if not samples:
            self.observer.info("No samples to randomize")
            return RandomizationResult()

        self.observer.info(
            f"Randomizing {len(samples)} samples on {self.rows}x{self.cols} plates "
            f"(plate size {self.plate_size}), covariates: {', '.join(self.config.covariates)}"
        )

        if self.config.algorithm == RandomizationAlgorithm.GREEDY:
            return self._randomize_greedy(samples)

        plate_capacities = self._plan_plates(len(samples))
        violations: List[ConstraintViolation] = []
        warnings: List[str] = []
        groups = None

        if self.config.repeated_measures:
            groups, plate_assignments = self._assign_subject_groups(samples, plate_capacities, warnings)
        else:
            plate_assignments = self._assign_covariate_groups(samples, plate_capacities, violations)

        plates = [self._empty_plate() for _ in plate_capacities]
        for plate_index, plate_samples in plate_assignments.items():
            violations.extend(self._fill_plate(plates[plate_index], plate_index, plate_samples))

        result = RandomizationResult(
            plates=plates,
            plate_assignments=plate_assignments,
            violations=violations,
            warnings=warnings,
        )
        self._check_conservation(samples, result)
        self._refine(result)

        if groups is not None:
            self._check_subjects_together(plate_assignments)
            result.repeated_measures_groups = groups
            result.repeated_measures_quality = self.repeated_measures_quality(groups, plate_assignments)

        self.observer.info(
            f"Randomization complete: {result.num_plates} plates, "
            f"clusters {result.clusters_before_optimization} -> {result.clusters_after_optimization}"
        )
        return result

    def _randomize_greedy(self, samples: List[Sample]) -> RandomizationResult:
        """Greedy row filling; cluster counts are reported but not refined."""
        plates, plate_assignments = greedy_randomize(
            samples, self.key_of, self.rows, self.cols, self.rng, self.observer
        )
        result = RandomizationResult(plates=plates, plate_assignments=plate_assignments)
        self._check_conservation(samples, result)

        quality = analyze_spatial_quality(result.plates, self.key_of, self.rows, self.cols)
        result.clusters_before_optimization = quality.total_clusters
        result.clusters_after_optimization = quality.total_clusters
        self.observer.info(f"Randomization complete: {result.num_plates} plates, {quality.total_clusters} clusters")
        return result

    def _plan_plates(self, total: int) -> List[int]:
        plates_needed = math.ceil(total / self.plate_size)
        capacities = assign_capacities(
            total, plates_needed, self.config.keep_empty_in_last_plate, self.plate_size,
            ContainerKind.PLATE, self.rng, self.observer
        )
        if sum(capacities) < total:
            raise InfeasibleCapacityError(
                f"Cannot place {total} samples: plate capacities {capacities} "
                f"hold only {sum(capacities)}."
            )
        return capacities

    def _assign_covariate_groups(
        self,
        samples: List[Sample],
        plate_capacities: List[int],
        violations: List[ConstraintViolation],
    ) -> Dict[int, List[Sample]]:
        groups = build_covariate_groups(samples, self.key_of)
        self.observer.info(f"{len(groups)} covariate groups: " + ", ".join(
            f"{key} ({len(members)})" for key, members in groups.items()
        ))

        minimums = calculate_expected_minimums(
            plate_capacities, groups, self.plate_size, ContainerKind.PLATE, self.observer
        )
        assignments = distribute_to_containers(
            groups, plate_capacities, self.plate_size, OverflowPrioritization.BY_CAPACITY,
            ContainerKind.PLATE, minimums, self.rng, self.observer
        )
        violations.extend(validate_distribution(
            assignments, self.key_of, minimums, ContainerKind.PLATE, self.observer
        ))
        return assignments

    def _assign_subject_groups(
        self,
        samples: List[Sample],
        plate_capacities: List[int],
        warnings: List[str],
    ) -> Tuple[List[RepeatedMeasuresGroup], Dict[int, List[Sample]]]:
        subject_attribute = self.config.repeated_measures_variable
        groups = build_repeated_measures_groups(
            samples, subject_attribute, self.config.get_treatment_variables(), self.observer
        )

        validation = validate_groups(groups, self.plate_size, self.observer)
        if not validation.is_valid:
            raise GroupValidationError(
                "Repeated-measures group validation failed:\n" + "\n".join(validation.errors),
                validation=validation,
            )
        warnings.extend(validation.warnings)

        packed = pack_groups_to_plates(groups, plate_capacities, self.observer)
        assignments = {
            index: [sample for group in plate_groups for sample in group.samples]
            for index, plate_groups in packed.items()
        }
        return groups, assignments

    def _empty_plate(self) -> PlateGrid:
        return [[None] * self.cols for _ in range(self.rows)]

    def _fill_plate(
        self,
        plate: PlateGrid,
        plate_index: int,
        plate_samples: List[Sample],
    ) -> List[ConstraintViolation]:
        """Spread one plate's samples over its rows, then place each row."""
        pool = list(plate_samples)
        self.rng.shuffle(pool)
        groups = build_covariate_groups(pool, self.key_of)

        total = len(pool)
        rows_used = min(math.ceil(total / self.cols), self.rows)
        row_capacities = assign_capacities(
            total, rows_used, True, self.cols, ContainerKind.ROW, self.rng, self.observer
        )

        minimums = calculate_expected_minimums(
            row_capacities, groups, self.cols, ContainerKind.ROW, self.observer
        )
        rows = distribute_to_containers(
            groups, row_capacities, self.cols, OverflowPrioritization.BY_GROUP_BALANCE,
            ContainerKind.ROW, minimums, self.rng, self.observer
        )
        violations = validate_distribution(rows, self.key_of, minimums, ContainerKind.ROW, self.observer)
        for violation in violations:
            violation.description = f"Plate {plate_index + 1}: {violation.description}"

        for row_index, row_samples in rows.items():
            if row_index < self.rows:
                place_row_greedily(
                    row_samples, plate, row_index, self.cols, self.key_of, self.rng, self.observer
                )

        self.observer.info(f"Plate {plate_index + 1}: {total} samples over {rows_used} rows")
        return violations

    def _refine(self, result: RandomizationResult) -> None:
        before = analyze_spatial_quality(result.plates, self.key_of, self.rows, self.cols)
        result.clusters_before_optimization = before.total_clusters

        if self.config.optimize:
            result.optimization_swaps = global_optimize(
                result.plates, self.key_of, self.rows, self.cols,
                self.config.max_optimization_passes, self.observer
            )
            after = analyze_spatial_quality(result.plates, self.key_of, self.rows, self.cols)
            result.clusters_after_optimization = after.total_clusters
        else:
            result.clusters_after_optimization = before.total_clusters

    def _check_conservation(self, samples: List[Sample], result: RandomizationResult) -> None:
        placed = Counter(
            sample.name
            for plate in result.plates for row in plate for sample in row
            if sample is not None
        )
        expected = Counter(sample.name for sample in samples)
        if placed != expected:
            missing = sorted((expected - placed).elements())
            extra = sorted((placed - expected).elements())
            raise ConstraintCheckError(
                f"Placed {sum(placed.values())} of {len(samples)} samples "
                f"(missing: {missing[:10]}, unexpected: {extra[:10]})"
            )

    def _check_subjects_together(self, plate_assignments: Dict[int, List[Sample]]) -> None:
        subject_attribute = self.config.repeated_measures_variable
        subject_plate: Dict[str, int] = {}
        splits = []

        for plate_index, plate_samples in plate_assignments.items():
            for sample in plate_samples:
                subject = sample.get(subject_attribute)
                if not has_subject_id(subject):
                    continue
                first = subject_plate.setdefault(subject, plate_index)
                message = (
                    f"Repeated-measures group '{subject}' is split across plates "
                    f"{first + 1} and {plate_index + 1}"
                )
                if first != plate_index and message not in splits:
                    splits.append(message)

        if splits:
            for message in splits:
                self.observer.error(message)
            raise ConstraintCheckError(
                "Repeated-measures constraint validation failed:\n" + "\n".join(splits) +
                f"\n\nAll samples with the same {subject_attribute} value must be assigned "
                f"to the same plate."
            )

    def repeated_measures_quality(
        self,
        groups: Sequence[RepeatedMeasuresGroup],
        plate_assignments: Dict[int, List[Sample]],
    ) -> RepeatedMeasuresQuality:
        """Subject-split count, groups per plate and the group size histogram."""
        subject_attribute = self.config.repeated_measures_variable
        subject_plate: Dict[str, int] = {}
        split_samples = 0
        plate_group_counts = []

        for plate_index in sorted(plate_assignments):
            plate_groups = set()
            for sample in plate_assignments[plate_index]:
                subject = sample.get(subject_attribute)
                if not has_subject_id(subject):
                    plate_groups.add(f"singleton_{sample.name}")
                    continue
                plate_groups.add(subject)
                if subject_plate.setdefault(subject, plate_index) != plate_index:
                    split_samples += 1
            plate_group_counts.append(len(plate_groups))

        sizes = GroupSizeDistribution()
        for group in groups:
            if group.is_singleton:
                sizes.singletons += 1
            elif group.size <= 5:
                sizes.small += 1
            elif group.size <= 15:
                sizes.medium += 1
            else:
                sizes.large += 1

        return RepeatedMeasuresQuality(
            constraints_satisfied=split_samples == 0,
            constraint_violations=split_samples,
            plate_group_counts=plate_group_counts,
            group_size_distribution=sizes,
        )


def randomize(
    samples: Sequence[Sample],
    config: RandomizationConfig,
    rng: Optional[random.Random] = None,
    observer: Optional[RandomizationObserver] = None,
) -> RandomizationResult:
    """Convenience wrapper around PlateRandomizer."""
    return PlateRandomizer(config, rng, observer).randomize(samples)
