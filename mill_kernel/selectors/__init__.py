"""Read-only selectors."""

from mill_kernel.selectors.production_selector import ProductionSelector

__all__ = ["ProductionSelector"]
