"""Base class for grid transfer operators."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..core.sparse_matrix import SparseMatrix
    from ..core.vector import Vector


class BaseOperator(ABC):
    """Abstract base class for operators acting between a level and its coarse child."""

    def __init__(self, name: str = "BaseOperator"):
        """
        Initialize base operator.

        Args:
            name: Human-readable name for the operator
        """
        self.name = name

    @abstractmethod
    def apply(self, fine_level: 'SparseMatrix', vector: 'Vector') -> None:
        """
        Apply the operator between ``fine_level`` and its coarse level.

        Args:
            fine_level: Level with a coarse level attached
            vector: Fine-level vector read or updated by the operator
        """
        pass

    @abstractmethod
    def can_apply(self, fine_level: 'SparseMatrix') -> bool:
        """
        Check if operator can be applied to the given level.

        Args:
            fine_level: Level to check

        Returns:
            True if operator can be applied, False otherwise
        """
        pass

    def __str__(self) -> str:
        """String representation of the operator."""
        return self.name

    def __repr__(self) -> str:
        """Detailed representation of the operator."""
        return f"{self.__class__.__name__}(name='{self.name}')"
