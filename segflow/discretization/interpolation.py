import numpy as np

from segflow.exceptions import ConfigurationError

AVERAGE = "average"
UPWIND = "upwind"
RHIE_CHOW = "rc"

ADVECTED_INTERP_METHODS = (AVERAGE, UPWIND)
VELOCITY_INTERP_METHODS = (AVERAGE, RHIE_CHOW)


def check_method(method, allowed, what):
    if method not in allowed:
        raise ConfigurationError(f"unknown {what} '{method}', expected one of {allowed}")
    return method


def interp_coeffs(method, face, elem_has_info, face_velocity=None):
    """
    Weights (w_elem, w_neighbor) of a face interpolation.

    ``elem_has_info`` selects the side: True when the element of interest is
    the face owner. For upwinding the advecting ``face_velocity`` decides the
    side; a flux leaving the element of interest takes its value.
    """
    g = face.g_elem if elem_has_info else face.g_neighbor
    if method == AVERAGE:
        return g, 1.0 - g
    if method == UPWIND:
        normal = face.normal if elem_has_info else -face.normal
        if np.dot(face_velocity, normal) > 0.0:
            return 1.0, 0.0
        return 0.0, 1.0
    raise ConfigurationError(f"unknown interpolation method '{method}'")


def interpolate(method, elem_value, neighbor_value, face, elem_has_info=True, face_velocity=None):
    w_elem, w_neighbor = interp_coeffs(method, face, elem_has_info, face_velocity)
    return w_elem * elem_value + w_neighbor * neighbor_value


def linear_interpolate(face, elem_value, neighbor_value):
    """Geometric average from the owner's side."""
    return face.g_elem * elem_value + face.g_neighbor * neighbor_value
