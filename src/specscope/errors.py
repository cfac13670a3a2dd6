from __future__ import annotations


class SpecscopeError(Exception):
    """Base class for rendering errors raised before any work starts."""


class InvalidRangeError(SpecscopeError, ValueError):
    """Malformed frame range or non-positive raster dimensions."""


class FrequencyOutOfRangeError(SpecscopeError, ValueError):
    """Requested bin cutoff exceeds the profile's Nyquist bin count."""
