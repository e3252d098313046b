"""subfix: subtitle generation with anomaly review and correction."""

__version__ = "0.1.0"
