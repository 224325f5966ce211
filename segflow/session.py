import itertools
import logging

from segflow.assembly.coefficient_cache import CoefficientCache
from segflow.exceptions import ConfigurationError

log = logging.getLogger(__name__)

_session_ids = itertools.count()


class SolverSession:
    """State shared by every kernel of one simulation.

    Kernels receive the session explicitly; two sessions in the same process
    never share coefficients.
    """

    def __init__(self, n_threads=1):
        if n_threads < 1:
            raise ConfigurationError(f"n_threads must be at least 1, got {n_threads}")
        self.id = next(_session_ids)
        self.n_threads = n_threads
        self.cache = CoefficientCache(n_threads, session_id=self.id)
        log.debug(f"session {self.id} created with {n_threads} thread bucket(s)")

    def __repr__(self):
        return f"SolverSession(id={self.id}, n_threads={self.n_threads})"
