import argparse
import logging
import os

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
from matplotlib.backends.backend_pdf import PdfPages

from segflow.config import SolverConfig
from segflow.solvers import SegregatedSolver

log = logging.getLogger(__name__)


def parse_args():
    parser = argparse.ArgumentParser(description="Run a segregated Rhie-Chow case.")
    parser.add_argument("case", help="YAML case file")
    parser.add_argument("--outer-iterations", type=int, default=None)
    parser.add_argument("--output", default="plots", help="directory for the PDF and the history CSV")
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args()


def plot_fields(pdf_filename, mesh, result, title):
    x = mesh.cell_centers[:, 0]
    y = mesh.cell_centers[:, 1]
    u, v = result.velocity[0], result.velocity[1]
    velocity_magnitude = np.sqrt(u**2 + v**2)

    with PdfPages(pdf_filename) as pdf:
        # --- Page 1: Flow field ---
        fig1 = plt.figure(figsize=(15, 10))
        fig1.suptitle(title, fontsize=16, y=0.98)
        gs = plt.GridSpec(2, 2)
        panels = [
            (u, "U Velocity"),
            (v, "V Velocity"),
            (velocity_magnitude, "Velocity Magnitude"),
            (result.pressure, "Pressure"),
        ]
        for k, (values, label) in enumerate(panels):
            ax = fig1.add_subplot(gs[k // 2, k % 2])
            cf = ax.tricontourf(x, y, values, levels=50, cmap="coolwarm")
            fig1.colorbar(cf, ax=ax)
            ax.set_title(label)
            ax.set_aspect("equal", "box")
        fig1.tight_layout(rect=[0, 0, 1, 0.96])
        pdf.savefig(fig1)
        plt.close(fig1)

        # --- Page 2: Residual history ---
        history = result.to_dataframe()
        fig2 = plt.figure(figsize=(10, 6))
        ax_hist = fig2.add_subplot(1, 1, 1)
        for column in history.columns:
            if column.startswith("momentum_residual") or column == "pressure_residual":
                ax_hist.semilogy(history["iteration"], history[column], marker="o", label=column)
        ax_hist.set_xlabel("Outer iteration")
        ax_hist.set_ylabel("Residual norm")
        ax_hist.grid(True, which="both", ls="--")
        ax_hist.legend()
        pdf.savefig(fig2)
        plt.close(fig2)


def main():
    args = parse_args()
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(name)s %(levelname)s: %(message)s")

    config = SolverConfig.from_yaml(args.case)
    mesh = config.build_mesh()
    registry = config.build_registry()

    solver = SegregatedSolver(mesh, registry, config)
    result = solver.run(args.outer_iterations)

    case_name = os.path.splitext(os.path.basename(args.case))[0]
    os.makedirs(args.output, exist_ok=True)
    history_file = os.path.join(args.output, f"{case_name}_history.csv")
    result.to_dataframe().to_csv(history_file, index=False)
    log.info(f"History written to {history_file}")

    pdf_filename = os.path.join(args.output, f"{case_name}_ncells{mesh.n_cells}.pdf")
    title = (
        f"{case_name}: {mesh.n_cells} cells, mu = {config.fluid.mu}, rho = {config.fluid.rho}, "
        f"{result.iterations} outer iterations"
    )
    plot_fields(pdf_filename, mesh, result, title)
    log.info(f"Plots written to {pdf_filename}")


if __name__ == "__main__":
    main()
