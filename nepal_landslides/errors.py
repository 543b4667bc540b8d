"""Error taxonomy for dataset preparation."""


class LandslideDataError(Exception):
    """Base class for all pipeline errors."""


class InvalidBoundingBox(LandslideDataError, ValueError):
    """Raised when a sampling region has xmin >= xmax or ymin >= ymax."""


class InsufficientSamples(LandslideDataError, RuntimeError):
    """Raised when the sampler cannot accept the requested number of points."""

    def __init__(self, requested: int, accepted: int, candidates_drawn: int):
        self.requested = requested
        self.accepted = accepted
        self.candidates_drawn = candidates_drawn
        super().__init__(
            f"Accepted {accepted} of {requested} requested pseudo-absence points "
            f"after drawing {candidates_drawn} candidates"
        )


class MissingFeatureValue(LandslideDataError, LookupError):
    """Raised when a raster holds no valid value at a point."""

    def __init__(self, layer: str, latitude: float, longitude: float, reason: str = "no-data"):
        self.layer = layer
        self.latitude = latitude
        self.longitude = longitude
        self.reason = reason
        super().__init__(
            f"Layer '{layer}' has {reason} at (lat={latitude:.6f}, lon={longitude:.6f})"
        )


class RasterExtentMismatch(MissingFeatureValue):
    """Raised when a point falls outside a raster's extent."""

    def __init__(self, layer: str, latitude: float, longitude: float):
        super().__init__(layer, latitude, longitude, reason="no coverage")
