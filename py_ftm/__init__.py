"""Flight time map: travel-time distortion of airport maps."""

__version__ = "0.1.0"
