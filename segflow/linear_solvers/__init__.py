from segflow.linear_solvers.scipy_solver import (
    BICGSTAB,
    DIRECT,
    LINEAR_SOLVERS,
    ScipyBicgstabSolver,
    ScipyDirectSolver,
    make_linear_solver,
)
