import logging
from abc import ABCMeta, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Optional

from pyee import EventEmitter

from .. import clock
from ..configuration import TrackSelectionParameters
from ..metadata import Metadata, MTrack
from ..stats import RTCInboundRtpStreamStats

logger = logging.getLogger(__name__)


@dataclass
class TrackSelection:
    """
    The audio and video renditions currently subscribed, by track index.
    """

    audio: Optional[int] = None
    video: Optional[int] = None


class TrackSelector(EventEmitter, metaclass=ABCMeta):
    """
    Base class of the multi-bitrate algorithms used by a player to switch
    between the renditions of a stream depending on the network congestion.

    :param params: A :class:`TrackSelectionParameters`, defaults are used if
        omitted.
    :param time_source: A callable returning the current time in
        milliseconds, :func:`rtcadapt.clock.current_ms` if omitted.
    """

    def __init__(
        self,
        params: Optional[TrackSelectionParameters] = None,
        time_source: Optional[Callable[[], int]] = None,
    ) -> None:
        super().__init__()
        if params is None:
            params = TrackSelectionParameters()

        self._learning_up_step = params.learning_up_step
        self._maximum_up_delay = params.maximum_up_delay
        self._up_delay = 0
        self._test_time = 0
        self._appreciation_time: Optional[int] = None
        self._track: Optional[MTrack] = None
        self._time_source = time_source

    @property
    def up_delay(self) -> int:
        """
        Delay in milliseconds of good network before switching up.
        """
        return self._up_delay

    @property
    def learning_up_step(self) -> int:
        return self._learning_up_step

    @property
    def maximum_up_delay(self) -> int:
        return self._maximum_up_delay

    def reset(self) -> None:
        """
        Reset the algorithm to its initial state.
        """
        self._up_delay = 0
        self._appreciation_time = None
        self._track = None

    def compute(
        self,
        metadata: Metadata,
        tracks: TrackSelection,
        stats: Mapping[str, RTCInboundRtpStreamStats],
    ) -> bool:
        """
        Switch to another rendition if the network requires it.

        :param metadata: The quality ladder of the stream.
        :param tracks: The current selection, updated in place on a switch.
        :param stats: The inbound statistics keyed by `"audio"` and `"video"`.
        :return: `True` if a track has changed.
        """
        # video is much more impacted by congestion, use it as reference
        track = tracks.video if tracks.video is not None else tracks.audio
        if track is None:
            self._track = None
            return False

        now = (self._time_source or clock.current_ms)()
        if self._track is None or self._track.idx != track:
            # new track or track switch
            self._appreciation_time = None
            self._test_time = now
            self._track = metadata.get(track)
            if self._track is None:
                self.__log_error("Can't find track %d absent from metadata", track)
                return False

        track_stats = stats.get("video" if track == tracks.video else "audio")
        if track_stats is None:
            self.__log_error(
                "Can't compute %s track %d without statistics",
                self._track.type.value,
                self._track.idx,
            )
            return False

        down = self._down_bitrate(now - self._test_time, self._track, track_stats)
        if down:
            self._appreciation_time = None
        else:
            if self._appreciation_time is None:
                self._appreciation_time = now
            elapsed = now - self._appreciation_time
            if (
                not self._up_bitrate(elapsed, self._track, track_stats)
                or elapsed < self._up_delay
            ):
                return False

        # audio changes are cheaper, try them first
        new_track = self._next_track(tracks.audio, metadata, down)
        if new_track is not None:
            tracks.audio = new_track.idx
        else:
            new_track = self._next_track(tracks.video, metadata, down)
            if new_track is None:
                # already at the top or the bottom of the ladder
                return False
            tracks.video = new_track.idx

        if down:
            self._up_delay = min(
                self._up_delay + self._learning_up_step, self._maximum_up_delay
            )
        self.__log_info(
            "%s from %s track %d (%dbps) to %s track %d (%dbps)",
            "DOWN" if down else "UP",
            self._track.type.value,
            self._track.idx,
            self._track.maxbps,
            new_track.type.value,
            new_track.idx,
            new_track.maxbps,
        )
        self.emit("switch", tracks, down)
        return True

    def _next_track(
        self, track: Optional[int], metadata: Metadata, down: bool
    ) -> Optional[MTrack]:
        if track is None:
            return None
        if metadata.get(track) is None:
            self.__log_error("Can't find track %d from metadata", track)
            return None
        return metadata.down(track) if down else metadata.up(track)

    @abstractmethod
    def _down_bitrate(
        self, elapsed: int, track: MTrack, stats: RTCInboundRtpStreamStats
    ) -> bool:
        """
        Return `True` if the network is congested and the quality must
        decrease now.

        :param elapsed: Milliseconds since the reference track was selected,
            0 on the first call for a new track.
        :param track: The reference track, the video track unless the stream
            is audio only.
        :param stats: The statistics of the reference track.
        """

    @abstractmethod
    def _up_bitrate(
        self, elapsed: int, track: MTrack, stats: RTCInboundRtpStreamStats
    ) -> bool:
        """
        Called when :meth:`_down_bitrate` returned `False`, return `True` if
        the quality can increase now.

        :param elapsed: Milliseconds of good network, 0 on the first call.
        :param track: The reference track.
        :param stats: The statistics of the reference track.
        """

    def __log_info(self, msg: str, *args) -> None:
        logger.info(f"{self.__class__.__name__}(%s) {msg}", id(self), *args)

    def __log_error(self, msg: str, *args) -> None:
        logger.error(f"{self.__class__.__name__}(%s) {msg}", id(self), *args)
