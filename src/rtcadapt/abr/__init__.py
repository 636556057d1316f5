from typing import Any

from .base import BitrateController
from .grade import GradeBitrateController
from .linear import LinearBitrateController

_ALGORITHMS: dict[str, type[BitrateController]] = {
    "grade": GradeBitrateController,
    "linear": LinearBitrateController,
}


def create_bitrate_controller(
    algorithm: str = "linear", **kwargs: Any
) -> BitrateController:
    """
    Create an adaptive bitrate controller.

    :param algorithm: Algorithm name, see :func:`list_bitrate_controllers`.
    :param kwargs: Arguments passed to the controller constructor.
    """
    if algorithm not in _ALGORITHMS:
        available = ", ".join(_ALGORITHMS.keys())
        raise ValueError(
            f"Unknown adaptive bitrate algorithm '{algorithm}'. Available: {available}"
        )
    return _ALGORITHMS[algorithm](**kwargs)


def list_bitrate_controllers() -> list[str]:
    return list(_ALGORITHMS.keys())


__all__ = [
    "BitrateController",
    "GradeBitrateController",
    "LinearBitrateController",
    "create_bitrate_controller",
    "list_bitrate_controllers",
]
