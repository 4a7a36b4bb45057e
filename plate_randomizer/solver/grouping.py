"""Covariate keys, covariate groups and repeated-measures groups."""
from typing import Callable, Dict, List, Optional, Sequence

from plate_randomizer.models import GroupValidation, RepeatedMeasuresGroup, Sample
from plate_randomizer.solver.observers import RandomizationObserver, resolve_observer

MISSING_VALUE = "N/A"
KEY_SEPARATOR = "|"
SINGLETON_PREFIX = "__singleton_"

# Validation thresholds
LARGE_GROUP_FRACTION = 0.5
SINGLETON_RATIO_LIMIT = 0.8
SINGLETON_MIN_GROUPS = 10

KeyFunction = Callable[[Sample], str]


def covariate_key(
    sample: Sample,
    attributes: Sequence[str],
    qc_column: Optional[str] = None,
    qc_values: Sequence[str] = (),
) -> str:
    """
    Join a sample's values for the given attributes, e.g. "Male|Drug|T0".
    
    Missing values become "N/A". A sample whose qc_column value is one of
    qc_values gets that value as a prefix, unless qc_column is itself one
    of the attributes.
    """
    key = KEY_SEPARATOR.join(sample.metadata.get(a) or MISSING_VALUE for a in attributes)
    
    if qc_column and qc_values and qc_column not in attributes:
        value = sample.metadata.get(qc_column)
        if value and value in qc_values:
            return f"{value}{KEY_SEPARATOR}{key}"
    
    return key


def key_function(
    attributes: Sequence[str],
    qc_column: Optional[str] = None,
    qc_values: Sequence[str] = (),
) -> KeyFunction:
    """Bind covariate_key to a fixed attribute selection."""
    attributes = list(attributes)
    qc_values = list(qc_values)
    
    def key_of(sample: Sample) -> str:
        return covariate_key(sample, attributes, qc_column, qc_values)
    
    return key_of


def build_covariate_groups(samples: Sequence[Sample], key_of: KeyFunction) -> Dict[str, List[Sample]]:
    """Group samples by covariate key, keeping input order inside each group."""
    groups: Dict[str, List[Sample]] = {}
    for sample in samples:
        groups.setdefault(key_of(sample), []).append(sample)
    return groups


def has_subject_id(value: Optional[str]) -> bool:
    """False for missing, blank, whitespace-only and "n/a" values."""
    if value is None:
        return False
    trimmed = value.strip()
    return trimmed != "" and trimmed.lower() != "n/a"


def build_repeated_measures_groups(
    samples: Sequence[Sample],
    subject_attribute: str,
    treatment_attributes: Sequence[str],
    observer: Optional[RandomizationObserver] = None,
) -> List[RepeatedMeasuresGroup]:
    """
    Group samples that share a subject identifier.
    
    Samples without an identifier each become a singleton group with a
    generated id that no real subject uses. Groups come out in order of
    first appearance.
    """
    observer = resolve_observer(observer)
    real_ids = {
        sample.metadata.get(subject_attribute) for sample in samples
        if has_subject_id(sample.metadata.get(subject_attribute))
    }
    subjects: Dict[str, List[Sample]] = {}
    singleton_ids = set()
    next_singleton = 0
    
    for sample in samples:
        subject = sample.metadata.get(subject_attribute)
        if has_subject_id(subject):
            subjects.setdefault(subject, []).append(sample)
        else:
            singleton_id = f"{SINGLETON_PREFIX}{next_singleton}"
            while singleton_id in real_ids:
                next_singleton += 1
                singleton_id = f"{SINGLETON_PREFIX}{next_singleton}"
            next_singleton += 1
            singleton_ids.add(singleton_id)
            subjects[singleton_id] = [sample]
    
    treatment_key = key_function(treatment_attributes)
    groups = []
    for subject_id, members in subjects.items():
        composition: Dict[str, int] = {}
        for sample in members:
            key = treatment_key(sample)
            composition[key] = composition.get(key, 0) + 1
        groups.append(RepeatedMeasuresGroup(
            subject_id=subject_id,
            samples=members,
            treatment_composition=composition,
            is_singleton=subject_id in singleton_ids,
        ))
    
    multi = [g for g in groups if not g.is_singleton]
    observer.info(
        f"Created {len(groups)} repeated-measures groups from {len(samples)} samples "
        f"({len(multi)} subjects, {len(singleton_ids)} singletons)"
    )
    if multi:
        sizes = [g.size for g in multi]
        observer.info(
            f"Subject group sizes: min {min(sizes)}, max {max(sizes)}, "
            f"mean {sum(sizes) / len(sizes):.1f}"
        )
    return groups


def validate_groups(
    groups: Sequence[RepeatedMeasuresGroup],
    container_capacity: int,
    observer: Optional[RandomizationObserver] = None,
) -> GroupValidation:
    """
    Check repeated-measures groups against the plate capacity.
    
    Errors: a group larger than the capacity. Warnings: a group over half
    the capacity, and more than 80% singletons among more than 10 groups.
    Groups are never modified.
    """
    observer = resolve_observer(observer)
    validation = GroupValidation()
    large_threshold = container_capacity * LARGE_GROUP_FRACTION
    singletons = 0
    
    for group in groups:
        if group.is_singleton:
            singletons += 1
        if group.size > container_capacity:
            validation.errors.append(
                f"Repeated-measures group '{group.subject_id}' has {group.size} samples, "
                f"which exceeds plate capacity of {container_capacity}. "
                f"Please increase plate size or split this group."
            )
        elif group.size > large_threshold:
            percentage = group.size / container_capacity * 100
            validation.warnings.append(
                f"Repeated-measures group '{group.subject_id}' has {group.size} samples "
                f"({percentage:.1f}% of plate capacity). Large groups may limit balancing flexibility."
            )
    
    if groups:
        ratio = singletons / len(groups)
        if ratio > SINGLETON_RATIO_LIMIT and len(groups) > SINGLETON_MIN_GROUPS:
            validation.warnings.append(
                f"High proportion of singleton groups ({ratio * 100:.1f}%). "
                f"Consider verifying that the repeated-measures variable is correct for grouping."
            )
    
    for message in validation.errors:
        observer.error(message)
    for message in validation.warnings:
        observer.warning(message)
    return validation
