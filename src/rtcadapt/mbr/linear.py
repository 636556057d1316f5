import logging
from collections.abc import Callable
from typing import Optional

from ..configuration import TrackSelectionParameters
from ..metadata import MTrack, MType
from ..stats import RTCInboundRtpStreamStats
from .base import TrackSelector

logger = logging.getLogger(__name__)

# maximum interval between two key frames
MAXIMUM_GOP_DURATION = 10000


class LinearTrackSelector(TrackSelector):
    """
    Multi-bitrate algorithm which evaluates the congestion from the gradient
    of lost packets, corroborated by the NACK count.

    Before considering the network good again on video, it waits for a full
    GOP to be decoded.
    """

    def __init__(
        self,
        params: Optional[TrackSelectionParameters] = None,
        time_source: Optional[Callable[[], int]] = None,
    ) -> None:
        super().__init__(params, time_source)
        self._lost = 0
        self._nack_count = 0
        self._key_frames_decoded = 0

    def reset(self) -> None:
        super().reset()
        self._lost = 0
        self._nack_count = 0
        self._key_frames_decoded = 0

    def _down_bitrate(
        self, elapsed: int, track: MTrack, stats: RTCInboundRtpStreamStats
    ) -> bool:
        lost = stats.packetsLost
        nack = stats.nackCount
        if lost is None:
            self.__log_warning("No packetsLost information in %r", stats)
            return False

        # NACK tells a real congestion apart from a track switch
        congested = (
            elapsed > 0
            and lost > self._lost
            and (nack > self._nack_count if nack else True)
        )
        self._lost = lost
        self._nack_count = nack or 0
        return congested

    def _up_bitrate(
        self, elapsed: int, track: MTrack, stats: RTCInboundRtpStreamStats
    ) -> bool:
        if track.type == MType.AUDIO:
            return True
        if elapsed > MAXIMUM_GOP_DURATION:
            return True

        key_frames_decoded = stats.keyFramesDecoded
        if key_frames_decoded is None:
            # can't measure the GOP, wait for its maximum duration
            return False
        if not elapsed:
            self._key_frames_decoded = key_frames_decoded
        elif key_frames_decoded > self._key_frames_decoded:
            # got a new key frame, wait for the next call to confirm no loss
            if not self._key_frames_decoded:
                return True
            self._key_frames_decoded = 0
        return False

    def __log_warning(self, msg: str, *args) -> None:
        logger.warning(f"LinearTrackSelector(%s) {msg}", id(self), *args)
