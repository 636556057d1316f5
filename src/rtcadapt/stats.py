from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class MediaReportStats:
    jitter_ms: Optional[float] = None
    loss_num: Optional[int] = None
    loss_perc: Optional[float] = None
    "Percentage of packets lost since the previous report, 0 to 100."
    nack_num: Optional[int] = None


@dataclass
class MediaReport:
    """
    The :class:`MediaReport` dictionary is the periodic media quality report
    sent by the server to a streamer, it feeds the adaptive bitrate
    controllers.
    """

    type: str = "on_media_receipt"
    millis: Optional[int] = None
    tracks: list[str] = field(default_factory=list)
    stats: Optional[MediaReportStats] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MediaReport":
        """
        Parse a media report as received from the server signaling.
        """
        stats = data.get("stats")
        return cls(
            type=data.get("type", "on_media_receipt"),
            millis=data.get("millis"),
            tracks=list(data.get("tracks") or []),
            stats=(
                MediaReportStats(
                    jitter_ms=stats.get("jitter_ms"),
                    loss_num=stats.get("loss_num"),
                    loss_perc=stats.get("loss_perc"),
                    nack_num=stats.get("nack_num"),
                )
                if stats is not None
                else None
            ),
        )


@dataclass
class RTCInboundRtpStreamStats:
    """
    The :class:`RTCInboundRtpStreamStats` dictionary represents the measurement
    metrics for the incoming RTP media stream of one rendition.

    Every metric is optional since not every transport surfaces every field.
    """

    kind: Optional[str] = None
    packetsReceived: Optional[int] = None
    packetsLost: Optional[int] = None
    "Cumulative number of RTP packets lost."
    packetsDiscarded: Optional[int] = None
    retransmittedPacketsReceived: Optional[int] = None
    nackCount: Optional[int] = None
    "Cumulative number of NACK packets sent."
    jitter: Optional[float] = None
    keyFramesDecoded: Optional[int] = None
    "Cumulative number of key frames decoded, video only."
    roundTripTime: Optional[float] = None
