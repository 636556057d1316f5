import asyncio
import fractions
import functools
import logging
import os
import sys
from collections.abc import Callable, Coroutine
from typing import Optional

if sys.version_info >= (3, 10):
    from typing import ParamSpec
else:
    from typing_extensions import ParamSpec

from av import VideoFrame
from rtcadapt.mediastreams import MediaStreamError, MediaStreamTrack
from rtcadapt.metadata import Metadata, MTrack, MType
from rtcadapt.stats import MediaReport, MediaReportStats, RTCInboundRtpStreamStats

P = ParamSpec("P")


def asynctest(
    coro: Callable[P, Coroutine[None, None, None]],
) -> Callable[P, None]:
    @functools.wraps(coro)
    def wrap(*args: P.args, **kwargs: P.kwargs) -> None:
        asyncio.run(coro(*args, **kwargs))

    return wrap


class DummyVideoTrack(MediaStreamTrack):
    """
    A video source producing green frames as fast as they are read.
    """

    kind = "video"

    def __init__(self, width: int = 640, height: int = 480) -> None:
        super().__init__()
        self.width = width
        self.height = height
        self._pts = 0

    async def recv(self) -> VideoFrame:
        if self.readyState != "live":
            raise MediaStreamError

        frame = VideoFrame(width=self.width, height=self.height)
        for p in frame.planes:
            p.update(bytes(p.buffer_size))
        frame.pts = self._pts
        frame.time_base = fractions.Fraction(1, 90000)
        self._pts += 3000
        return frame


def loss_report(loss_perc: Optional[float]) -> MediaReport:
    return MediaReport(stats=MediaReportStats(loss_perc=loss_perc))


def inbound_stats(
    lost: Optional[int] = 0,
    nack: Optional[int] = 0,
    key_frames: Optional[int] = None,
) -> RTCInboundRtpStreamStats:
    return RTCInboundRtpStreamStats(
        packetsLost=lost, nackCount=nack, keyFramesDecoded=key_frames
    )


def ladder() -> Metadata:
    """
    Video renditions 3 (3Mbps) > 2 (2Mbps) > 1 (1Mbps),
    audio renditions 10 (128kbps) > 11 (64kbps).
    """
    return Metadata(
        [
            MTrack(idx=1, type=MType.VIDEO, codec="H264", maxbps=1000000),
            MTrack(idx=2, type=MType.VIDEO, codec="H264", maxbps=2000000),
            MTrack(idx=3, type=MType.VIDEO, codec="H264", maxbps=3000000),
            MTrack(idx=10, type=MType.AUDIO, codec="opus", maxbps=128000),
            MTrack(idx=11, type=MType.AUDIO, codec="opus", maxbps=64000),
        ]
    )


if os.environ.get("RTCADAPT_DEBUG"):
    logging.basicConfig(level=logging.DEBUG)
