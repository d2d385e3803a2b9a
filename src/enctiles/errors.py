"""Exception hierarchy for enctiles.

Configuration errors abort startup, data-integrity errors drop a single
chart from the index, and processing errors fail a single tile request.
"""


class EncTilesError(Exception):
    """Base class for all enctiles errors."""


class ConfigurationError(EncTilesError):
    """Malformed settings or style document, bad color code or icon path."""


class DataIntegrityError(EncTilesError):
    """Chart is missing a required layer, feature or field."""


class ProcessingError(EncTilesError):
    """A geometry operation failed while compositing a tile."""


class IndexFrozenError(RuntimeError):
    """The chart index was modified after it was frozen."""
