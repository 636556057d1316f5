# ruff: noqa: F401
import logging

from .abr import (
    BitrateController,
    GradeBitrateController,
    LinearBitrateController,
    create_bitrate_controller,
)
from .configuration import BitrateParameters, TrackSelectionParameters
from .mbr import (
    LinearTrackSelector,
    TrackSelection,
    TrackSelector,
    create_track_selector,
)
from .mediastreams import (
    MediaStreamError,
    MediaStreamTrack,
    ScalableVideoStreamTrack,
)
from .metadata import Metadata, MTrack, MType
from .stats import MediaReport, MediaReportStats, RTCInboundRtpStreamStats
from .window import SampleWindow

__version__ = "1.0.0"

# Set default logging handler to avoid "No handler found" warnings.
logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "BitrateController",
    "BitrateParameters",
    "GradeBitrateController",
    "LinearBitrateController",
    "LinearTrackSelector",
    "MediaReport",
    "MediaReportStats",
    "MediaStreamError",
    "MediaStreamTrack",
    "Metadata",
    "MTrack",
    "MType",
    "RTCInboundRtpStreamStats",
    "SampleWindow",
    "ScalableVideoStreamTrack",
    "TrackSelection",
    "TrackSelectionParameters",
    "TrackSelector",
    "create_bitrate_controller",
    "create_track_selector",
]
