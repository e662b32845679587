"""QR presence tokens with round-trip timing anomaly scoring."""

__version__ = "0.1.0"
