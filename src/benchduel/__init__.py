"""benchduel: run the same workload against two back-ends and compare them."""

__version__ = "0.1.0"
