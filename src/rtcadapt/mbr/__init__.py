from typing import Any

from .base import TrackSelection, TrackSelector
from .linear import LinearTrackSelector

_ALGORITHMS: dict[str, type[TrackSelector]] = {
    "linear": LinearTrackSelector,
}


def create_track_selector(algorithm: str = "linear", **kwargs: Any) -> TrackSelector:
    """
    Create a multi-bitrate track selector.

    :param algorithm: Algorithm name, see :func:`list_track_selectors`.
    :param kwargs: Arguments passed to the selector constructor.
    """
    if algorithm not in _ALGORITHMS:
        available = ", ".join(_ALGORITHMS.keys())
        raise ValueError(
            f"Unknown multi-bitrate algorithm '{algorithm}'. Available: {available}"
        )
    return _ALGORITHMS[algorithm](**kwargs)


def list_track_selectors() -> list[str]:
    return list(_ALGORITHMS.keys())


__all__ = [
    "LinearTrackSelector",
    "TrackSelection",
    "TrackSelector",
    "create_track_selector",
    "list_track_selectors",
]
