"""Typed records passed between the momentum and the pressure sub-problems.

Field names are the coupling contract; component suffixes follow the mesh
dimension (``u_star``, ``v_star``, ``w_star``; ``Ainv_x``, ``Ainv_y``, ``Ainv_z``).
"""

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from segflow.assembly.pressure_predictor import COMPONENT_SUFFIXES
from segflow.assembly.rhie_chow import VELOCITY_ROLES
from segflow.exceptions import ConfigurationError

PRESSURE_FIELD = "pressure"
PRESSURE_OLD_FIELD = "pressure_old"


def star_names(dim):
    return tuple(f"{role}_star" for role in VELOCITY_ROLES[:dim])


def advected_names(dim):
    return tuple(f"{role}_adv" for role in VELOCITY_ROLES[:dim])


def component_names(prefix, dim):
    return tuple(f"{prefix}_{s}" for s in COMPONENT_SUFFIXES[:dim])


def momentum_to_pressure_fields(dim):
    return (
        star_names(dim)
        + component_names("Ainv", dim)
        + component_names("Hu", dim)
        + component_names("RHS", dim)
        + (PRESSURE_OLD_FIELD,)
    )


def pressure_to_momentum_fields(dim):
    return advected_names(dim) + (PRESSURE_FIELD,)


def check_exchange(momentum_fields, pressure_fields, dim):
    """Both sides must declare every exchanged field before the first solve."""
    problems = []
    missing = pressure_fields.missing(momentum_to_pressure_fields(dim) + pressure_to_momentum_fields(dim))
    if missing:
        problems.append(f"pressure sub-problem lacks {missing}")
    missing = momentum_fields.missing(pressure_to_momentum_fields(dim))
    if missing:
        problems.append(f"momentum sub-problem lacks {missing}")
    if problems:
        raise ConfigurationError("field exchange is incomplete: " + "; ".join(problems))


def _copy_into(fields, names, arrays):
    for name, values in zip(names, arrays):
        fields.require(name).values[:] = values


@dataclass(frozen=True)
class MomentumToPressure:
    velocity_star: Tuple[np.ndarray, ...]
    ainv: Tuple[np.ndarray, ...]
    hu: Tuple[np.ndarray, ...]
    rhs: Tuple[np.ndarray, ...]
    pressure_old: np.ndarray

    @property
    def dim(self):
        return len(self.velocity_star)

    def deliver(self, fields):
        """Copy into the pressure sub-problem; the pressure iterate starts from ``pressure_old``."""
        dim = self.dim
        _copy_into(fields, star_names(dim), self.velocity_star)
        _copy_into(fields, component_names("Ainv", dim), self.ainv)
        _copy_into(fields, component_names("Hu", dim), self.hu)
        _copy_into(fields, component_names("RHS", dim), self.rhs)
        _copy_into(fields, (PRESSURE_OLD_FIELD, PRESSURE_FIELD), (self.pressure_old, self.pressure_old))


@dataclass(frozen=True)
class PressureToMomentum:
    velocity_adv: Tuple[np.ndarray, ...]
    pressure: np.ndarray

    def deliver(self, fields, pressure_name=PRESSURE_FIELD):
        """Copy into ``fields``, storing the pressure under ``pressure_name``."""
        _copy_into(fields, advected_names(len(self.velocity_adv)), self.velocity_adv)
        _copy_into(fields, (pressure_name,), (self.pressure,))
