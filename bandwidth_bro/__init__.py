"""bandwidth-bro: continuous network health diagnostics."""

__version__ = "1.0.0"
