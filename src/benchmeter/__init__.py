"""benchmeter: statistically rigorous micro-benchmarks."""

__version__ = "0.1.0"
