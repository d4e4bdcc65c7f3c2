"""Product catalog service.

Hierarchical categories and products with a reversible audit trail,
two-phase bulk import and per-batch revert.
"""

__version__ = "0.1.0"
