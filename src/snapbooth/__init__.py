"""SnapBooth - photo booth media generation and event export."""

__version__ = "0.1.0"
