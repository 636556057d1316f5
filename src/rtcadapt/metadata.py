import dataclasses
import enum
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)


class MType(enum.Enum):
    """
    Media types, as named by the server.
    """

    AUDIO = "audio"
    VIDEO = "video"
    DATA = "data"


@dataclass
class MTrack:
    """
    A rendition of the stream.

    :attr:`up` and :attr:`down` are the indexes of the neighbor renditions of
    the same media type, by ascending and descending maximum bitrate.
    """

    idx: int
    type: MType
    codec: str = ""
    name: str = ""
    trackid: int = 0
    bps: int = 0
    "Nominal bitrate in bits per second."
    maxbps: int = 0
    "Maximum observed bitrate in bits per second."
    width: int = 0
    height: int = 0
    channels: int = 0
    rate: int = 0
    up: Optional[int] = None
    down: Optional[int] = None


def _link(medias: list[MTrack]) -> None:
    # medias is sorted by descending maxbps
    for i, media in enumerate(medias):
        media.up = medias[i - 1].idx if i > 0 else None
        media.down = medias[i + 1].idx if i + 1 < len(medias) else None


class Metadata:
    """
    The quality ladder of a stream.

    Renditions are stored by index in :attr:`tracks`, audio and video
    renditions are additionally listed by descending maximum bitrate in
    :attr:`audios` and :attr:`videos`.
    """

    def __init__(
        self,
        tracks: Iterable[MTrack] = (),
        type: str = "",
        width: int = 0,
        height: int = 0,
    ) -> None:
        self.type = type
        self.width = width
        self.height = height
        self.tracks: dict[int, MTrack] = {}
        self.audios: list[MTrack] = []
        self.videos: list[MTrack] = []
        self.datas: list[MTrack] = []

        for track in tracks:
            if track.type == MType.AUDIO:
                self.audios.append(track)
            elif track.type == MType.VIDEO:
                self.videos.append(track)
            else:
                self.datas.append(track)

        self.audios.sort(key=lambda t: t.maxbps, reverse=True)
        self.videos.sort(key=lambda t: t.maxbps, reverse=True)
        _link(self.audios)
        _link(self.videos)
        for track in self.audios + self.videos + self.datas:
            self.tracks[track.idx] = track

    def __repr__(self) -> str:
        return f"Metadata(type={self.type!r}, tracks={list(self.tracks)!r})"

    def get(self, idx: Optional[int]) -> Optional[MTrack]:
        return self.tracks.get(idx) if idx is not None else None

    def up(self, idx: Optional[int]) -> Optional[MTrack]:
        """
        Return the rendition above `idx`, if any.
        """
        track = self.get(idx)
        return self.get(track.up) if track is not None else None

    def down(self, idx: Optional[int]) -> Optional[MTrack]:
        """
        Return the rendition below `idx`, if any.
        """
        track = self.get(idx)
        return self.get(track.down) if track is not None else None

    def subset(self, codecs: Optional[Iterable[str]] = None) -> "Metadata":
        """
        Return a new ladder holding only the renditions whose codec is in
        `codecs`. Neighbor links skip the renditions which were removed.

        :param codecs: Supported codec names, compared case-insensitively.
        """
        supported = {c.lower() for c in codecs} if codecs is not None else None
        copies: list[MTrack] = []
        for track in self.tracks.values():
            if (
                supported is not None
                and track.type != MType.DATA
                and track.codec.lower() not in supported
            ):
                continue
            copies.append(dataclasses.replace(track))

        metadata = Metadata(type=self.type, width=self.width, height=self.height)
        for track in copies:
            metadata.tracks[track.idx] = track
            if track.type == MType.AUDIO:
                metadata.audios.append(track)
            elif track.type == MType.VIDEO:
                metadata.videos.append(track)
            else:
                metadata.datas.append(track)

        # fix up / down by walking the original order
        for track in metadata.audios + metadata.videos:
            up = track.up
            while up is not None and up not in metadata.tracks:
                up = self.tracks[up].up
            track.up = up
            down = track.down
            while down is not None and down not in metadata.tracks:
                down = self.tracks[down].down
            track.down = down
        return metadata

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Metadata":
        """
        Build the ladder from the stream metadata sent by the server.
        """
        tracks: list[MTrack] = []
        for name, desc in ((data.get("meta") or {}).get("tracks") or {}).items():
            kind = str(desc.get("type") or "").lower()
            if kind == "meta":
                kind = MType.DATA.value
            try:
                mtype = MType(kind)
            except ValueError:
                logger.warning("Unknown track type %s for track %s", kind, name)
                continue
            if desc.get("idx") is None:
                logger.warning("Missing index for track %s", name)
                continue

            tracks.append(
                MTrack(
                    idx=desc["idx"],
                    type=mtype,
                    codec=desc.get("codec") or "",
                    name=name,
                    trackid=desc.get("trackid") or 0,
                    bps=desc.get("bps") or 0,
                    maxbps=desc.get("maxbps") or 0,
                    width=desc.get("width") or 0,
                    height=desc.get("height") or 0,
                    channels=desc.get("channels") or 0,
                    rate=desc.get("rate") or 0,
                )
            )

        return cls(
            tracks,
            type=data.get("type") or "",
            width=data.get("width") or 0,
            height=data.get("height") or 0,
        )
