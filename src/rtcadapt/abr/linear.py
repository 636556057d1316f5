import logging
import math
from collections.abc import Callable
from typing import Optional

from ..configuration import BitrateParameters
from ..mediastreams import ScalableVideoStreamTrack
from ..stats import MediaReport
from .base import BitrateController, round_half_up

logger = logging.getLogger(__name__)


class LinearVars:
    def __init__(self, recovery_factor: int) -> None:
        self.last_loss = math.inf
        self.recovery_factor = recovery_factor
        self.stable_bitrate = 0
        self.stable_time: Optional[int] = None


class LinearBitrateController(BitrateController):
    """
    Adaptive bitrate algorithm driven by the loss percentage of the media
    reports.

    - a bitrate above the server constraint is brought back to the constraint,
    - a loss which does not improve decreases the bitrate by the same ratio,
    - once no loss has been seen for :attr:`appreciation_duration`, the bitrate
      climbs towards :attr:`maximum` in steps which get smaller after every
      congestion.
    """

    def __init__(
        self,
        params: Optional[BitrateParameters] = None,
        source: Optional[ScalableVideoStreamTrack] = None,
        time_source: Optional[Callable[[], int]] = None,
    ) -> None:
        super().__init__(params, source, time_source)
        self._vars = self._create_vars()

    def reset(self) -> None:
        super().reset()
        self._vars = self._create_vars()

    def _create_vars(self) -> LinearVars:
        # the first stability window increments the factor up to recovery_steps
        return LinearVars(self.recovery_steps - 1)

    def _compute_bitrate(
        self,
        bitrate: int,
        constraint: Optional[int],
        report: Optional[MediaReport],
    ) -> int:
        vars = self._vars
        loss = report.stats.loss_perc if report and report.stats else None

        if constraint and bitrate > constraint:
            # follow the server advisement
            vars.stable_time = None
            bitrate = constraint
        elif loss:
            if loss >= vars.last_loss:
                bitrate = round_half_up((1 - loss / 100) * bitrate)
            vars.stable_time = None
            vars.last_loss = loss
        else:
            vars.last_loss = math.inf
            now = self._now()
            if vars.stable_time is None:
                # after a congestion, or the first time
                vars.stable_bitrate = bitrate
                vars.recovery_factor += 1
                vars.stable_time = now + self.appreciation_duration
                self.__log_debug(
                    "Stable from %d, recovery factor %d",
                    bitrate,
                    vars.recovery_factor,
                )
            elif now >= vars.stable_time:
                self._update_video_constraints(bitrate)
                bitrate += math.ceil(
                    (self.maximum - vars.stable_bitrate) / vars.recovery_factor
                )
                vars.recovery_factor = max(
                    vars.recovery_factor - 1, self.recovery_steps
                )
                vars.stable_time = now + self.appreciation_duration
        return bitrate

    def __log_debug(self, msg: str, *args) -> None:
        logger.debug(f"LinearBitrateController(%s) {msg}", id(self), *args)
