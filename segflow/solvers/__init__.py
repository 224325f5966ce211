from .segregated_solver import OuterIteration, SegregatedSolver, SolverResult

__all__ = ["SegregatedSolver", "OuterIteration", "SolverResult"]
