"""Plate randomizer constraint definitions."""

# Constraint priority levels
# 1 = Hard constraint (a run that breaks it fails)
# 2-3 = Soft constraints (broken ones are reported, not fatal)
CONSTRAINT_PRIORITY = {
    "capacity": 1,              # Container size - hard
    "conservation": 1,          # Every input sample placed once - hard
    "atomic_grouping": 1,       # Repeated measures on one plate - hard
    "proportional_balance": 2,  # Expected group minimums - soft
    "spatial_declustering": 3,  # Adjacent same-group wells - soft
}

# Constraint explanations for reports
CONSTRAINT_EXPLANATIONS = {
    "capacity": """
**Capacity**
No plate or row holds more samples than its assigned capacity.
The total number of samples must fit in the available wells.
""",

    "conservation": """
**Conservation**
Every input sample appears exactly once in the layout.
No sample is lost or duplicated.
""",

    "atomic_grouping": """
**Atomic grouping (repeated measures)**
All samples of one subject are placed on the same plate,
so within-subject comparisons are not confounded with plate effects.
""",

    "proportional_balance": """
**Proportional balance**
Each covariate group is spread across plates and rows in proportion
to their capacity. Shortfalls can happen with small groups.
""",

    "spatial_declustering": """
**Spatial declustering**
Samples of the same covariate group should not sit in neighbouring
wells, including the wrap from the end of one row to the next.
""",
}


def get_constraint_explanation(constraint_name: str) -> str:
    """Get explanation for a constraint."""
    return CONSTRAINT_EXPLANATIONS.get(
        constraint_name,
        f"Unknown constraint: {constraint_name}"
    )


def is_hard_constraint(constraint_name: str) -> bool:
    """Check if constraint is hard (cannot be relaxed)."""
    return CONSTRAINT_PRIORITY.get(constraint_name, 1) == 1


def severity_for(constraint_name: str) -> str:
    """Violation severity: "error" for hard constraints, else "warning"."""
    return "error" if is_hard_constraint(constraint_name) else "warning"
