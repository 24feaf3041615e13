# gpxview/errors

"""
gpxview.errors

Central exception hierarchy for gpxview.

Rationale:
  - Modules should raise specific, meaningful errors.
  - Callers can catch GpxViewError (broad) or specific subclasses (narrow).
"""


class GpxViewError(RuntimeError):
    """Base class for all gpxview runtime errors."""


# ---- Parsing errors ----------------------------

class ParseError(GpxViewError):
    """Errors turning document text into a Track."""

class MalformedDocumentError(ParseError):
    """The document is not well-formed XML; every parse strategy failed."""

class ConversionUnavailableError(ParseError):
    """The GeoJSON converter is missing or produced something unusable."""


# ---- Transport errors --------------------------

class TransportError(GpxViewError):
    """A transport payload does not have the expected shape."""


# ---- Dispatch pool errors ----------------------

class PoolError(GpxViewError):
    """Errors raised for work submitted to a DispatchPool."""

class PoolTerminatedError(PoolError):
    """The pool was shut down while the request was outstanding."""

class UnitFailureError(PoolError):
    """A worker process died or could not be reached."""

class ParseFailedError(PoolError):
    """A worker process reported that the document could not be parsed."""


# ---- Configuration errors ----------------------

class ConfigError(GpxViewError):
    """A configuration file exists but could not be read."""
