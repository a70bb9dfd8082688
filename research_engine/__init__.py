"""Research engine: plan, search, rank and synthesize cited answers."""

__version__ = "0.1.0"
