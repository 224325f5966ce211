"""segflow: segregated Rhie–Chow pressure–velocity coupling on collocated finite-volume meshes."""

from segflow.exceptions import ConfigurationError, InternalInvariantViolation, SegflowError

__version__ = "0.1.0"

__all__ = ["ConfigurationError", "InternalInvariantViolation", "SegflowError", "__version__"]
