import argparse
import logging
import random

from rtcadapt import (
    BitrateParameters,
    Metadata,
    MTrack,
    MType,
    RTCInboundRtpStreamStats,
    TrackSelection,
    create_bitrate_controller,
    create_track_selector,
)
from rtcadapt.stats import MediaReport, MediaReportStats


class SimulatedClock:
    """
    Simulated time in milliseconds, advanced by the loop, one report per second.
    """

    def __init__(self) -> None:
        self.now = 0

    def __call__(self) -> int:
        return self.now


def link_loss(capacity: int, bitrate: int) -> float:
    """
    Loss percentage of a link which drops whatever exceeds its capacity.
    """
    if bitrate <= capacity:
        return 0.0
    return round(100 * (bitrate - capacity) / bitrate, 2)


def link_capacity(t: int, args) -> int:
    # capacity drops for a while in the middle of the run
    if args.duration // 3 <= t < 2 * args.duration // 3:
        return args.low_capacity
    return args.capacity


def run_streamer(args) -> None:
    clock = SimulatedClock()
    abr = create_bitrate_controller(
        args.algorithm,
        params=BitrateParameters(maximum=args.maximum),
        time_source=clock,
    )
    bitrate = None
    for t in range(args.duration):
        clock.now = t * 1000
        if args.reconnect and t == args.reconnect:
            print("%4ds reconnect" % t)
            abr.reset()
            bitrate = None

        capacity = link_capacity(t, args)
        loss = link_loss(capacity, bitrate or 0)
        report = MediaReport(millis=clock.now, stats=MediaReportStats(loss_perc=loss))
        constraint = capacity if args.algorithm == "grade" else None
        bitrate = abr.compute(bitrate, constraint, report)
        print(
            "%4ds capacity %8d loss %6.2f%% bitrate %8d" % (t, capacity, loss, bitrate)
        )


def run_player(args) -> None:
    metadata = Metadata(
        [
            MTrack(idx=1, type=MType.VIDEO, codec="H264", maxbps=3000000),
            MTrack(idx=2, type=MType.VIDEO, codec="H264", maxbps=1500000),
            MTrack(idx=3, type=MType.VIDEO, codec="H264", maxbps=500000),
            MTrack(idx=4, type=MType.AUDIO, codec="opus", maxbps=128000),
            MTrack(idx=5, type=MType.AUDIO, codec="opus", maxbps=32000),
        ]
    )
    clock = SimulatedClock()
    mbr = create_track_selector(time_source=clock)
    tracks = TrackSelection(audio=4, video=1)
    lost = nack = key_frames = 0
    for t in range(args.duration):
        clock.now = t * 1000
        capacity = link_capacity(t, args)
        bitrate = metadata.tracks[tracks.video].maxbps
        bitrate += metadata.tracks[tracks.audio].maxbps
        if bitrate > capacity:
            lost += random.randint(1, 50)
            nack += random.randint(1, 10)
        if t % 2 == 0:
            key_frames += 1
        stats = {
            "audio": RTCInboundRtpStreamStats(kind="audio", packetsLost=0),
            "video": RTCInboundRtpStreamStats(
                kind="video",
                packetsLost=lost,
                nackCount=nack,
                keyFramesDecoded=key_frames,
            ),
        }
        switched = mbr.compute(metadata, tracks, stats)
        print(
            "%4ds capacity %8d audio %d video %d%s"
            % (t, capacity, tracks.audio, tracks.video, " *" if switched else "")
        )


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Feed a simulated lossy link into the quality controllers"
    )
    parser.add_argument("role", choices=["streamer", "player"])
    parser.add_argument(
        "--algorithm", default="linear", help="Adaptive bitrate algorithm"
    )
    parser.add_argument("--capacity", type=int, default=2500000)
    parser.add_argument("--low-capacity", type=int, default=800000)
    parser.add_argument("--maximum", type=int, default=3000000)
    parser.add_argument("--duration", type=int, default=90, help="Seconds to simulate")
    parser.add_argument(
        "--reconnect", type=int, help="Simulate a reconnection at this second"
    )
    parser.add_argument("--seed", type=int, default=0)
    parser.add_argument("--verbose", "-v", action="count")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.INFO)
    random.seed(args.seed)

    if args.role == "streamer":
        run_streamer(args)
    else:
        run_player(args)
