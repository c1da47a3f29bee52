from __future__ import annotations


class ConfigurationError(ValueError):
    """Invalid digitization settings, detected before any event is processed."""


class GeometryResolutionError(LookupError):
    """A cell id (or hit position) could not be mapped onto the readout topology."""
