from dataclasses import dataclass

DEFAULT_STARTUP_BITRATE = 2000000
DEFAULT_MINIMUM_BITRATE = 200000
DEFAULT_MAXIMUM_BITRATE = 3000000
DEFAULT_RECOVERY_STEPS = 2
DEFAULT_APPRECIATION_DURATION = 4000

DEFAULT_LEARNING_UP_STEP = 1400
DEFAULT_MAXIMUM_UP_DELAY = 28000


@dataclass
class BitrateParameters:
    """
    The :class:`BitrateParameters` dictionary is used to configure a
    :class:`~rtcadapt.abr.BitrateController`.

    All bitrates are expressed in bits per second, all durations in
    milliseconds.
    """

    startup: int = DEFAULT_STARTUP_BITRATE
    "The bitrate returned by the first computation after a (re)connection."
    minimum: int = DEFAULT_MINIMUM_BITRATE
    "The lowest bitrate the controller may return."
    maximum: int = DEFAULT_MAXIMUM_BITRATE
    "The highest bitrate the controller may return."
    recovery_steps: int = DEFAULT_RECOVERY_STEPS
    """
    The number of steps used to climb back towards :attr:`maximum` once the
    network is stable. The count grows after each congestion so that later
    probes are smaller, and shrinks back to this value as the network
    proves itself. Only used by the linear strategy.
    """
    appreciation_duration: int = DEFAULT_APPRECIATION_DURATION
    """
    How long the network must stay free of loss before an upward probe.
    The default is longer than a typical 2 second GOP. Only used by the
    linear strategy.
    """


@dataclass
class TrackSelectionParameters:
    """
    The :class:`TrackSelectionParameters` dictionary is used to configure a
    :class:`~rtcadapt.mbr.TrackSelector`.
    """

    learning_up_step: int = DEFAULT_LEARNING_UP_STEP
    "Delay in milliseconds added to the next up try on every congestion."
    maximum_up_delay: int = DEFAULT_MAXIMUM_UP_DELAY
    "Maximum delay in milliseconds to wait before trying to switch up again."
