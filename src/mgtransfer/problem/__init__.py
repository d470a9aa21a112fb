"""Reference problem generation and halo setup for structured grid levels."""

from .halo import setup_halo
from .generate import generate_problem, setup_problem, FineProblem, StagedOperator

__all__ = ["generate_problem", "setup_problem", "setup_halo", "FineProblem", "StagedOperator"]
