import logging
from collections.abc import Callable
from typing import Optional

from ..configuration import BitrateParameters
from ..mediastreams import ScalableVideoStreamTrack
from ..stats import MediaReport
from ..window import SampleWindow
from .base import BitrateController, round_half_up

logger = logging.getLogger(__name__)

BITRATE_RECOVERY_MIN_TIMEOUT = 2500
BITRATE_RECOVERY_MAX_TIMEOUT = 60000
BITRATE_RECOVERY_INITIAL_TIMEOUT = 10000
STABLE_BITRATE_UPDATE_INTERVAL = 4000


class GradeVars:
    def __init__(self, loss_window: int, stable_window: int) -> None:
        self.loss_percents = SampleWindow(loss_window)
        self.stable_bitrates = SampleWindow(stable_window)
        self.stable_bitrate_update_time = 0
        self.bitrate_recovery_timeout = BITRATE_RECOVERY_INITIAL_TIMEOUT
        self.bitrate_recovery_next_time: Optional[int] = None
        self.bitrate_recovery_time: Optional[int] = None
        self.bitrate_constraint_time: Optional[int] = None


class GradeBitrateController(BitrateController):
    """
    Adaptive bitrate algorithm which follows the server constraint and
    probes around it once a recovery timeout has elapsed.

    The timeout doubles every time the constraint decreases while a
    recovery is still recent, and shrinks by a quarter after every
    successful recovery.

    :param loss_window: Number of loss percentages averaged.
    :param stable_window: Number of stable bitrates averaged.
    """

    good_loss = 0.2
    bad_loss = 5.0
    increase_factor = 1.05
    overshoot_increase_factor = 1.005
    decrease_factor = 0.99
    stability_tolerance = 0.2

    def __init__(
        self,
        params: Optional[BitrateParameters] = None,
        source: Optional[ScalableVideoStreamTrack] = None,
        loss_window: int = 5,
        stable_window: int = 15,
        time_source: Optional[Callable[[], int]] = None,
    ) -> None:
        super().__init__(params, source, time_source)
        self._loss_window = loss_window
        self._stable_window = stable_window
        self._vars = GradeVars(loss_window, stable_window)

    @property
    def recovery_timeout(self) -> int:
        """
        The current delay in milliseconds between two recovery attempts.
        """
        return self._vars.bitrate_recovery_timeout

    def reset(self) -> None:
        super().reset()
        self._vars = GradeVars(self._loss_window, self._stable_window)

    def _compute_bitrate(
        self,
        bitrate: int,
        constraint: Optional[int],
        report: Optional[MediaReport],
    ) -> int:
        vars = self._vars
        stats = report.stats if report else None
        if stats is not None and stats.loss_perc is not None:
            vars.loss_percents.push(stats.loss_perc)

        # update the stable bitrates every few seconds while loss is low
        now = self._now()
        if (
            now >= vars.stable_bitrate_update_time
            and vars.loss_percents.average < self.good_loss
        ):
            vars.stable_bitrate_update_time = now + STABLE_BITRATE_UPDATE_INTERVAL
            last_constraint = constraint if constraint is not None else self.constraint
            if last_constraint is not None:
                vars.stable_bitrates.push(min(last_constraint, bitrate, self.maximum))
            else:
                vars.stable_bitrates.push(min(bitrate, self.maximum))

        # bitrate steady within the tolerance => adapt the capture resolution
        stable_bitrate = vars.stable_bitrates.average
        if (
            vars.stable_bitrates.size
            and vars.stable_bitrates.minimum
            >= stable_bitrate * (1 - self.stability_tolerance)
            and vars.stable_bitrates.maximum
            <= stable_bitrate * (1 + self.stability_tolerance)
        ):
            self._update_video_constraints(stable_bitrate)

        # constraint decreased
        if (
            constraint is not None
            and self.constraint is not None
            and constraint < self.constraint
        ):
            self.__log_debug("Constraint decreased by %d", self.constraint - constraint)
            if vars.bitrate_constraint_time is None:
                if vars.bitrate_recovery_time is None:
                    self.__log_debug("First constraint, halve bitrate")
                    bitrate = round_half_up(bitrate / 2)
            elif vars.bitrate_recovery_time is not None:
                recovery_duration = now - vars.bitrate_recovery_time
                if (
                    recovery_duration < vars.bitrate_recovery_timeout
                    or vars.bitrate_recovery_timeout == BITRATE_RECOVERY_MIN_TIMEOUT
                ):
                    self._increase_recovery_timeout()
                    vars.bitrate_recovery_time = None
            vars.bitrate_constraint_time = now

        if constraint:
            if constraint < self.minimum:
                bitrate = self.minimum

            if self.maximum > constraint and (
                vars.bitrate_recovery_next_time is None
                or now >= vars.bitrate_recovery_next_time
            ):
                new_bitrate = None
                if vars.bitrate_recovery_next_time is not None:
                    new_bitrate = self._recover(constraint)
                if new_bitrate is None:
                    vars.bitrate_recovery_next_time = (
                        now + vars.bitrate_recovery_timeout
                    )
                    self.__log_debug(
                        "Start recovery timer %d ms", vars.bitrate_recovery_timeout
                    )
                else:
                    vars.bitrate_recovery_time = now
                    vars.bitrate_recovery_next_time = None
                    bitrate = new_bitrate
        return bitrate

    def _recover(self, constraint: int) -> Optional[int]:
        vars = self._vars
        loss = vars.loss_percents.average
        self.__log_debug("Recovery with average loss %.2f", loss)

        if loss < self.good_loss:
            bitrate = self._increase_target_bitrate(constraint, self.increase_factor)
            if (
                vars.bitrate_constraint_time is not None
                and bitrate > vars.stable_bitrates.average
            ):
                bitrate = self._increase_target_bitrate(
                    constraint, self.overshoot_increase_factor
                )
            self._decrease_recovery_timeout()
            return bitrate
        elif loss < self.bad_loss:
            self._increase_recovery_timeout()
            return self._decrease_target_bitrate(constraint)
        return None

    def _increase_target_bitrate(self, constraint: int, factor: float) -> int:
        return min(round_half_up(constraint * factor), self.maximum)

    def _decrease_target_bitrate(self, constraint: int) -> int:
        return max(round_half_up(constraint * self.decrease_factor), self.minimum)

    def _increase_recovery_timeout(self) -> None:
        self._vars.bitrate_recovery_timeout = min(
            BITRATE_RECOVERY_MAX_TIMEOUT, 2 * self._vars.bitrate_recovery_timeout
        )

    def _decrease_recovery_timeout(self) -> None:
        self._vars.bitrate_recovery_timeout = max(
            BITRATE_RECOVERY_MIN_TIMEOUT,
            round_half_up(0.75 * self._vars.bitrate_recovery_timeout),
        )

    def __log_debug(self, msg: str, *args) -> None:
        logger.debug(f"GradeBitrateController(%s) {msg}", id(self), *args)
