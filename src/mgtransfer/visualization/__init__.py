"""Plots of the multigrid hierarchy and its transfer operators."""

from .hierarchy_plots import injection_mask, plot_injection_pattern, plot_hierarchy_sizes

__all__ = ["injection_mask", "plot_injection_pattern", "plot_hierarchy_sizes"]
