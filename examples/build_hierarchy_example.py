"""
Basic example: build a geometric multigrid hierarchy and move a correction through it.

Problem: 27-point stencil on a 16x16x16 grid (diagonal 26, neighbours -1)
Levels:  16^3 -> 8^3 -> 4^3 -> 2^3, each generated geometrically
"""

import numpy as np
import matplotlib.pyplot as plt
import sys
from pathlib import Path

# Add src to Python path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from mgtransfer import MGTransferConfig, DeviceMemoryManager, Vector, setup_problem
from mgtransfer import build_hierarchy, release_hierarchy, ProlongationOperator
from mgtransfer.hierarchy import mirror_hierarchy, verify_hierarchy
from mgtransfer.visualization import plot_injection_pattern, plot_hierarchy_sizes


def main():
    """Build a four-level hierarchy, verify it and plot the injection pattern."""

    print("=" * 60)
    print("mg-transfer - hierarchy construction example")
    print("=" * 60)

    config = MGTransferConfig()
    config.grid.nx = config.grid.ny = config.grid.nz = 16
    config.hierarchy.num_levels = 4
    config.validate()
    config.setup_logging()

    memory = DeviceMemoryManager(config.device.backend)
    print(f"Backend: {memory.backend}")

    problem = setup_problem(config, memory)
    levels = build_hierarchy(problem.A, config.hierarchy.num_levels,
                             launch=config.device.launch_config())

    for level in levels:
        print(f"  {level.title}: {level.geom.nx}x{level.geom.ny}x{level.geom.nz}, "
              f"{level.local_number_of_nonzeros} non-zeros")

    # Prolongate a unit correction from level 1 into a zero fine vector
    fine = levels[0]
    fine.mg_data.xc.fill(1.0)
    xf = Vector(fine.local_number_of_columns, memory, fine.value_dtype, label="xf")
    xf.initialize_device()
    ProlongationOperator().apply(fine, xf)
    touched = np.count_nonzero(xf.copy_to_host())
    print(f"Prolongation touched {touched} of {fine.local_number_of_rows} fine points")

    mirror_hierarchy(problem.A)
    for result in verify_hierarchy(problem.A):
        print(f"  verify {result.level}: {'ok' if result.passed else result.failures}")

    fig, axes = plt.subplots(1, 2, figsize=(11, 5))
    plot_injection_pattern(fine, z_index=0, ax=axes[0])
    plot_hierarchy_sizes(levels, ax=axes[1])
    fig.tight_layout()
    fig.savefig("hierarchy.png", dpi=150)
    print("Saved hierarchy.png")

    xf.release()
    for vector in (problem.b, problem.x, problem.xexact):
        vector.release()
    release_hierarchy(problem.A)
    memory.cleanup()


if __name__ == "__main__":
    main()
