"""create-amp: scaffold Amp-powered frontend and backend projects."""

__version__ = "0.1.0"
