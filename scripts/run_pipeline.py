#!/usr/bin/env python3
"""
Pipeline Soak Script
====================

Standalone script that runs the stability gate against a real frame source
without the HTTP service.

This script:
    1. Reads frames from a video file / camera, or a WebSocket stream
    2. Feeds them through FramePipelineController with the mock classifier
    3. Logs overlay changes, results and gate stats every few seconds
    4. Reports a final summary

Usage:
    python scripts/run_pipeline.py --video clip.mp4 --duration 60
    python scripts/run_pipeline.py --video 0
    python scripts/run_pipeline.py --url ws://localhost:8000/ws/stream
"""

import argparse
import asyncio
import logging
import os
import sys
import time

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from stillgate.classification import MockClassificationEngine
from stillgate.models.orientation import exif_orientation_from_device
from stillgate.overlay import OverlayStateMachine
from stillgate.pipeline import FramePipelineController
from stillgate.presentation import EventBroadcaster, ResultReviewer
from stillgate.registration import create_registrar
from stillgate.stream import FrameBuffer, FrameConsumer, VideoFrameSource


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


class LoggingPresenter(EventBroadcaster):
    """Broadcaster that also logs every overlay change."""

    def set_overlay_visible(self, visible: bool) -> None:
        logger.info(f"Overlay {'SHOWN' if visible else 'HIDDEN'}")
        super().set_overlay_visible(visible)


async def run_pipeline(
    video: str,
    url: str,
    duration: int,
    method: str,
    threshold: float,
    report_interval: int,
) -> dict:
    """
    Run the pipeline for `duration` seconds.

    Returns:
        Final pipeline metrics dict
    """
    logger.info("=" * 60)
    logger.info("StillGate pipeline soak")
    logger.info("=" * 60)
    logger.info(f"Source: {video or url}")
    logger.info(f"Registration: {method}, threshold: {threshold}")
    logger.info(f"Duration: {duration} seconds")
    logger.info("=" * 60)

    buffer = FrameBuffer(maxsize=5)
    if video:
        source = VideoFrameSource(source=video, buffer=buffer, loop=True)
    else:
        source = FrameConsumer(url=url, buffer=buffer)

    presenter = LoggingPresenter()
    controller = FramePipelineController(
        registrar=create_registrar(method),
        classifier=MockClassificationEngine(
            labels=["mug", "keyboard", "plant", "book"],
            delay_seconds=0.2,
        ),
        overlay=OverlayStateMachine(presenter=presenter),
        distance_threshold=threshold,
    )
    reviewer = ResultReviewer(controller, presenter, hold_seconds=2.0)

    source_task = asyncio.create_task(source.run())
    start_time = time.time()
    last_report_time = start_time

    try:
        while time.time() - start_time < duration:
            frame = await buffer.get(timeout=1.0)
            if frame is not None:
                controller.process_frame(
                    frame, exif_orientation_from_device(frame.device_orientation)
                )

            if time.time() - last_report_time >= report_interval:
                m = controller.metrics
                logger.info("-" * 40)
                logger.info(f"  Frames: {m.frames_seen} (skipped {m.frames_skipped})")
                logger.info(f"  Registration failures: {m.registration_failures}")
                logger.info(f"  Stable frames: {m.stable_frames}")
                logger.info(f"  Dispatches: {m.dispatches}")
                logger.info(f"  Results: {m.classifications_completed}, accepted {reviewer.accepted_count}")
                logger.info(f"  Buffer dropped: {buffer.dropped_count}")
                last_report_time = time.time()

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        await source.stop()
        try:
            await asyncio.wait_for(source_task, timeout=5.0)
        except asyncio.TimeoutError:
            source_task.cancel()
            try:
                await source_task
            except asyncio.CancelledError:
                pass
        await controller.drain(timeout=5.0)
        reviewer.dismiss()

    summary = controller.get_metrics()
    logger.info("=" * 60)
    logger.info("FINAL SUMMARY")
    logger.info("=" * 60)
    for key, value in summary.items():
        logger.info(f"{key}: {value}")
    logger.info("=" * 60)

    return summary


def main():
    parser = argparse.ArgumentParser(description="Run the StillGate pipeline against a frame source")
    parser.add_argument("--video", type=str, default="", help="Video file path or camera index")
    parser.add_argument(
        "--url",
        type=str,
        default=os.environ.get("STILLGATE_STREAM_URL", "ws://localhost:8000/ws/stream"),
        help="WebSocket stream URL (used when --video is not given)",
    )
    parser.add_argument("--duration", type=int, default=60, help="Run time in seconds (default: 60)")
    parser.add_argument(
        "--method",
        type=str,
        default="phase_correlation",
        choices=["phase_correlation", "farneback"],
        help="Registration method",
    )
    parser.add_argument("--threshold", type=float, default=20.0, help="Distance threshold")
    parser.add_argument("--report-interval", type=int, default=5, help="Seconds between reports")

    args = parser.parse_args()

    summary = asyncio.run(run_pipeline(
        video=args.video,
        url=args.url,
        duration=args.duration,
        method=args.method,
        threshold=args.threshold,
        report_interval=args.report_interval,
    ))

    sys.exit(0 if summary["frames_seen"] > 0 else 1)


if __name__ == "__main__":
    main()
