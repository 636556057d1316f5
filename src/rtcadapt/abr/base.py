import logging
import math
from abc import ABCMeta, abstractmethod
from collections.abc import Callable
from typing import Optional

from pyee import EventEmitter

from .. import clock
from ..configuration import BitrateParameters
from ..mediastreams import ScalableVideoStreamTrack
from ..stats import MediaReport

logger = logging.getLogger(__name__)

HD_PIXELS = 1280 * 720
HD_BITRATE = 1200000


def round_half_up(value: float) -> int:
    """
    Round to the nearest integer, halves going up.
    """
    return math.floor(value + 0.5)


class BitrateController(EventEmitter, metaclass=ABCMeta):
    """
    Base class of the adaptive bitrate algorithms used by a streamer.

    Call :meth:`compute` on every media report to get the bitrate to
    configure, and :meth:`reset` when the connection is re-established.

    :param params: A :class:`BitrateParameters`, defaults are used if omitted.
    :param source: An optional video track whose capture resolution is
        adapted to the stable bitrate, it must expose `settings` and
        `apply_constraints()` like
        :class:`~rtcadapt.mediastreams.ScalableVideoStreamTrack`.
    :param time_source: A callable returning the current time in
        milliseconds, :func:`rtcadapt.clock.current_ms` if omitted.
    """

    def __init__(
        self,
        params: Optional[BitrateParameters] = None,
        source: Optional[ScalableVideoStreamTrack] = None,
        time_source: Optional[Callable[[], int]] = None,
    ) -> None:
        super().__init__()
        if params is None:
            params = BitrateParameters()

        self._bitrate: Optional[int] = None
        self._constraint: Optional[int] = None
        self._maximum = round_half_up(params.maximum)
        self._minimum = self._startup = self._maximum
        self.minimum = params.minimum
        self.startup = params.startup
        self._recovery_steps = 1
        self.recovery_steps = params.recovery_steps
        self._appreciation_duration = params.appreciation_duration
        self.source = source
        self._time_source = time_source

    @property
    def startup(self) -> int:
        """
        The bitrate returned right after a (re)connection.
        """
        return self._startup

    @startup.setter
    def startup(self, value: float) -> None:
        self._startup = max(self._minimum, min(round_half_up(value), self._maximum))

    @property
    def minimum(self) -> int:
        return self._minimum

    @minimum.setter
    def minimum(self, value: float) -> None:
        value = round_half_up(value)
        self._minimum = value
        if value > self._maximum:
            self._maximum = self._startup = value
        elif self._startup < value:
            self._startup = value

    @property
    def maximum(self) -> int:
        return self._maximum

    @maximum.setter
    def maximum(self, value: float) -> None:
        value = round_half_up(value)
        self._maximum = value
        if value < self._minimum:
            self._minimum = self._startup = value
        elif self._startup > value:
            self._startup = value

    @property
    def constraint(self) -> Optional[int]:
        """
        The last bitrate constraint passed to :meth:`compute`.
        """
        return self._constraint

    @property
    def recovery_steps(self) -> int:
        return self._recovery_steps

    @recovery_steps.setter
    def recovery_steps(self, value: int) -> None:
        self._recovery_steps = max(1, value)

    @property
    def appreciation_duration(self) -> int:
        return self._appreciation_duration

    @appreciation_duration.setter
    def appreciation_duration(self, value: int) -> None:
        self._appreciation_duration = value

    @property
    def value(self) -> Optional[int]:
        """
        The last current bitrate passed to :meth:`compute`.
        """
        return self._bitrate

    def compute(
        self,
        bitrate: Optional[int] = None,
        constraint: Optional[int] = None,
        report: Optional[MediaReport] = None,
    ) -> int:
        """
        Compute the bitrate to use regarding the network conditions.

        :param bitrate: The current bitrate, `None` right after a (re)connection.
        :param constraint: The bitrate ceiling imposed by the server, if any.
        :param report: The last :class:`~rtcadapt.stats.MediaReport`, if any.
        :return: The wanted bitrate, between :attr:`minimum` and :attr:`maximum`.
        """
        if bitrate is None:
            new_bitrate = self.startup
            self.__log_info("Set startup bitrate to %d", new_bitrate)
        else:
            new_bitrate = max(
                self.minimum,
                min(self._compute_bitrate(bitrate, constraint, report), self.maximum),
            )
            if new_bitrate > bitrate:
                self.__log_info("Increase bitrate %d => %d", bitrate, new_bitrate)
            elif new_bitrate < bitrate:
                self.__log_info("Decrease bitrate %d => %d", bitrate, new_bitrate)

        self._bitrate = bitrate
        self._constraint = constraint
        if new_bitrate != bitrate:
            self.emit("bitrate", new_bitrate, bitrate)
        return new_bitrate

    def reset(self) -> None:
        """
        Reset the algorithm to its initial state.
        """
        self._bitrate = None
        self._constraint = None

    def _now(self) -> int:
        return (self._time_source or clock.current_ms)()

    @abstractmethod
    def _compute_bitrate(
        self,
        bitrate: int,
        constraint: Optional[int],
        report: Optional[MediaReport],
    ) -> int:
        """
        Return the wanted bitrate, the result is clamped by :meth:`compute`.
        """

    def _update_video_constraints(self, bitrate: float) -> None:
        """
        Double the capture resolution when the bitrate allows HD, halve it
        when an HD capture cannot be sustained.
        """
        source = self.source
        if source is None:
            return
        settings = source.settings
        width, height = settings.get("width"), settings.get("height")
        if not width or not height:
            return

        pixels = width * height
        if bitrate >= HD_BITRATE:
            if pixels < HD_PIXELS * 0.7:
                self._upgrade_video_constraint(width, height, 2.0)
        elif HD_PIXELS * 0.7 < pixels < HD_PIXELS * 1.3:
            self._upgrade_video_constraint(width, height, 0.5)

    def _upgrade_video_constraint(self, width: int, height: int, factor: float) -> None:
        new_width = round_half_up(width * factor)
        new_height = round_half_up(height * factor)
        self.__log_info(
            "Resolution change %dx%d => %dx%d", width, height, new_width, new_height
        )
        try:
            self.source.apply_constraints(width=new_width, height=new_height)
        except Exception as exc:
            self.__log_warning("Resolution change failed: %r", exc)

    def __log_info(self, msg: str, *args) -> None:
        logger.info(f"{self.__class__.__name__}(%s) {msg}", id(self), *args)

    def __log_warning(self, msg: str, *args) -> None:
        logger.warning(f"{self.__class__.__name__}(%s) {msg}", id(self), *args)
