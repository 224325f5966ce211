from .conditions import (
    BC_CATEGORIES,
    FLOW,
    FULLY_DEVELOPED_FLOW,
    NO_SLIP_WALL,
    SLIP_WALL,
    SYMMETRY,
    BoundaryCondition,
    BoundaryConditionRegistry,
    BoundaryFaceValues,
)
from .classifier import BoundaryClassifier

__all__ = [
    "BC_CATEGORIES",
    "FLOW",
    "FULLY_DEVELOPED_FLOW",
    "NO_SLIP_WALL",
    "SLIP_WALL",
    "SYMMETRY",
    "BoundaryCondition",
    "BoundaryConditionRegistry",
    "BoundaryFaceValues",
    "BoundaryClassifier",
]
