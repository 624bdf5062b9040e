"""CardWatch — cross-marketplace trading card price watchlist."""

__version__ = "0.1.0"
