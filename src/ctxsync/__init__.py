"""ctxsync: context document registry and drift validator."""

__version__ = "0.1.0"
