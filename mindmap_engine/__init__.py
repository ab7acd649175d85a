"""Mind map editing engine: normalized store, layouts, undo history and integrity checks."""

__version__ = "0.2.0"
