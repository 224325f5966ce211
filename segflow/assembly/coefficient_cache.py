import logging

from segflow.exceptions import InternalInvariantViolation

log = logging.getLogger(__name__)


class CoefficientCache:
    """
    Memo of the per-element Rhie–Chow momentum coefficients.

    One bucket per worker thread, created up front, so threads never write to
    the same dictionary. Entries live until :meth:`clear`; there is no
    recomputation on read, so the owner must clear the cache whenever the
    advecting velocity changes.

    Parameters
    ----------
    n_threads : int
        Number of worker-thread buckets.
    session_id : int
        Id of the owning session, reported in error messages.
    """

    def __init__(self, n_threads=1, session_id=0):
        self.session_id = session_id
        self._buckets = {tid: {} for tid in range(n_threads)}
        self._computations = {tid: 0 for tid in range(n_threads)}

    def _bucket(self, tid):
        bucket = self._buckets.get(tid)
        if bucket is None:
            raise InternalInvariantViolation(
                f"session {self.session_id}: no coefficient bucket for thread {tid} "
                f"(buckets: {sorted(self._buckets)})"
            )
        return bucket

    def lookup(self, tid, elem, compute):
        """Return the cached coefficients of ``elem``, computing them on a miss."""
        bucket = self._bucket(tid)
        coeffs = bucket.get(elem)
        if coeffs is None:
            coeffs = compute(elem)
            coeffs.setflags(write=False)
            bucket[elem] = coeffs
            self._computations[tid] += 1
        return coeffs

    def clear(self, tid=None):
        """Drop the entries of bucket ``tid``, or of every bucket when omitted."""
        tids = list(self._buckets) if tid is None else [tid]
        for t in tids:
            self._bucket(t).clear()
        log.debug(f"session {self.session_id}: cleared coefficient buckets {tids}")

    @property
    def n_computations(self):
        """Coefficient evaluations since the cache was created."""
        return sum(self._computations.values())

    @property
    def n_threads(self):
        return len(self._buckets)

    def __len__(self):
        return sum(len(b) for b in self._buckets.values())

    def __contains__(self, key):
        tid, elem = key
        return elem in self._buckets.get(tid, {})
