import logging
import uuid
from abc import ABCMeta, abstractmethod
from typing import Optional

from av.frame import Frame
from pyee.asyncio import AsyncIOEventEmitter

logger = logging.getLogger(__name__)


class MediaStreamError(Exception):
    pass


class MediaStreamTrack(AsyncIOEventEmitter, metaclass=ABCMeta):
    """
    A single media track within a stream, read frame by frame with
    :meth:`recv` and emitting `"ended"` once stopped.
    """

    kind = "unknown"

    def __init__(self) -> None:
        super().__init__()
        self.__ended = False
        self._id = str(uuid.uuid4())

    @property
    def id(self) -> str:
        """
        An automatically generated globally unique ID.
        """
        return self._id

    @property
    def readyState(self) -> str:
        return "ended" if self.__ended else "live"

    @abstractmethod
    async def recv(self) -> Frame:
        """
        Receive the next :class:`~av.video.frame.VideoFrame`.
        """

    def stop(self) -> None:
        if not self.__ended:
            self.__ended = True
            self.emit("ended")

            # no more events will be emitted, so remove all event listeners
            # to facilitate garbage collection.
            self.remove_all_listeners()


class ScalableVideoStreamTrack(MediaStreamTrack):
    """
    A video track which rescales the frames of a source track to the
    resolution requested through :meth:`apply_constraints`.

    This is the source an adaptive bitrate controller can be attached to,
    see :attr:`rtcadapt.abr.BitrateController.source`.

    :param source: The video :class:`MediaStreamTrack` to read frames from.
    :param width: The capture width, if known before the first frame.
    :param height: The capture height, if known before the first frame.
    """

    kind = "video"

    def __init__(
        self,
        source: MediaStreamTrack,
        width: Optional[int] = None,
        height: Optional[int] = None,
    ) -> None:
        super().__init__()
        self._source = source
        self._width = width
        self._height = height
        self._constrained = False

    @property
    def settings(self) -> dict[str, Optional[int]]:
        """
        The current capture resolution.
        """
        return {"width": self._width, "height": self._height}

    def apply_constraints(
        self, width: Optional[int] = None, height: Optional[int] = None
    ) -> None:
        """
        Request a new capture resolution for the next frames.

        :param width: The new width in pixels, unchanged if `None`.
        :param height: The new height in pixels, unchanged if `None`.
        """
        if self.readyState != "live":
            raise MediaStreamError
        for value in (width, height):
            if value is not None and int(value) <= 0:
                raise ValueError(f"Invalid resolution {width}x{height}")

        if width is not None:
            self._width = int(width)
        if height is not None:
            self._height = int(height)
        self._constrained = True
        self.__log_debug("Apply constraints %sx%s", self._width, self._height)
        self.emit("resize", self._width, self._height)

    async def recv(self) -> Frame:
        if self.readyState != "live":
            raise MediaStreamError

        frame = await self._source.recv()
        if not self._constrained:
            # follow the source until a resolution is requested
            self._width = frame.width
            self._height = frame.height
            return frame
        if frame.width == self._width and frame.height == self._height:
            return frame

        scaled = frame.reformat(width=self._width, height=self._height)
        scaled.pts = frame.pts
        scaled.time_base = frame.time_base
        return scaled

    def stop(self) -> None:
        super().stop()
        self._source.stop()

    def __log_debug(self, msg: str, *args) -> None:
        logger.debug(f"ScalableVideoStreamTrack(%s) {msg}", self.id, *args)
