"""MG warehouse report splitter: classify AU/NZ exports and split them per warehouse."""

__version__ = "1.0.0"
