"""Directory content manifests and silent-corruption checks."""

__version__ = "0.1.0"
