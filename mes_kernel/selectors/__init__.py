"""Read-only query selectors."""

from mes_kernel.selectors.base import BaseSelector
from mes_kernel.selectors.board_selector import BoardSelector

__all__ = ["BaseSelector", "BoardSelector"]
