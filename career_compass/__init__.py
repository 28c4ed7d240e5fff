"""Career Compass: resume + preference answers -> ranked career recommendations."""

__version__ = "0.1.0"
