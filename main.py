"""
Anchor watch replay host
Feeds a recorded GNSS track (CSV) through the anchor watch pipeline, logs
alarm transitions and prints the filtered track and metrics summary.

CSV columns: timestamp_ms,latitude,longitude,accuracy_m,signal_quality
(empty accuracy_m / signal_quality cells mean "not reported")
"""

import csv
import sys
import logging
import argparse
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

import config
from anchor_core.localization import (
    AnchorWatchPipeline,
    PipelineConfig,
    PipelineResult,
    OutlierGateConfig,
    KalmanConfig,
    SmootherConfig,
)
from anchor_core.proto import RawFix

# Configure logging
logging.basicConfig(
    level=getattr(logging, config.LOGGING_CONFIG["level"]),
    format=config.LOGGING_CONFIG["format"]
)
logger = logging.getLogger(__name__)

TRACK_COLUMNS = ("timestamp_ms", "latitude", "longitude", "accuracy_m", "signal_quality")


def _optional_float(value: Optional[str]) -> Optional[float]:
    if value is None or value.strip() == "":
        return None
    return float(value)


def parse_fix_row(row: dict) -> Tuple[RawFix, Optional[int]]:
    """
    Convert one CSV row into a fix and its signal quality.

    Args:
        row: Row from csv.DictReader

    Returns:
        (RawFix, signal_quality or None)

    Raises:
        ValueError: If a required column is missing or malformed
    """
    for column in ("timestamp_ms", "latitude", "longitude"):
        if row.get(column) is None or row[column].strip() == "":
            raise ValueError(f"Missing column '{column}'")

    fix = RawFix(
        latitude=float(row["latitude"]),
        longitude=float(row["longitude"]),
        timestamp_ms=int(row["timestamp_ms"]),
        accuracy_m=_optional_float(row.get("accuracy_m")),
    )

    quality = _optional_float(row.get("signal_quality"))
    return fix, None if quality is None else int(quality)


def load_track(path: Path) -> Iterator[Tuple[RawFix, Optional[int]]]:
    """
    Read a recorded track, skipping malformed rows.

    Args:
        path: CSV file with a header row

    Yields:
        (RawFix, signal_quality) per valid row
    """
    with open(path, newline="") as f:
        reader = csv.DictReader(f)

        for line_number, row in enumerate(reader, start=2):
            try:
                yield parse_fix_row(row)
            except ValueError as e:
                logger.warning(f"Skipping line {line_number} of {path}: {e}")


def build_pipeline_config() -> PipelineConfig:
    """Build pipeline configuration from config.py."""
    return PipelineConfig(
        gate_config=OutlierGateConfig(**config.GATE_CONFIG),
        kalman_config=KalmanConfig(**config.KALMAN_CONFIG),
        smoother_config=SmootherConfig(**config.SMOOTHER_CONFIG),
    )


class AnchorWatchReplay:
    """Replays a recorded track through one anchor watch session."""

    def __init__(
        self,
        anchor: Optional[Tuple[float, float]] = None,
        radius_m: Optional[float] = None,
        anchor_first: bool = False,
        pipeline_config: Optional[PipelineConfig] = None
    ):
        """
        Initialize replay.

        Args:
            anchor: Fixed anchor (lat, lon), or None
            radius_m: Alarm radius (m), config default if None
            anchor_first: Drop the anchor at the first accepted fix
            pipeline_config: Pipeline configuration (config.py if None)
        """
        self.pipeline = AnchorWatchPipeline(pipeline_config or build_pipeline_config())
        self.radius_m = config.ANCHOR_CONFIG["default_radius_m"] if radius_m is None else radius_m
        self.anchor_first = anchor_first and anchor is None

        self.transitions: List[PipelineResult] = []
        self.accepted_count = 0
        self.total_count = 0

        self.pipeline.add_listener(self._on_result)

        if anchor is not None:
            self.pipeline.set_anchor(anchor[0], anchor[1], self.radius_m)

    def _on_result(self, result: PipelineResult):
        transition = result.transition
        if transition is None:
            return

        self.transitions.append(result)
        distance = f"{transition.distance_m:.1f}m" if transition.distance_m is not None else "n/a"
        logger.warning(f"Alarm {transition.previous.name} -> {transition.current.name} "
                       f"({transition.cause.name}, distance {distance}, t={transition.timestamp_ms})")

    def run(self, track) -> int:
        """
        Feed every fix of a track through the pipeline.

        Args:
            track: Iterable of (RawFix, signal_quality)

        Returns:
            Number of accepted fixes
        """
        print_interval = config.OUTPUT_CONFIG["print_interval"]

        for fix, signal_quality in track:
            self.total_count += 1
            result = self.pipeline.process(fix, signal_quality)

            if not result.accepted:
                logger.debug(f"Fix at t={fix.timestamp_ms} dropped: {result.rejection_reason.description}")
                continue

            self.accepted_count += 1

            if self.anchor_first and self.pipeline.anchor is None:
                anchor = self.pipeline.set_anchor_at_current(self.radius_m)
                logger.info(f"Anchor dropped at first fix {anchor.latitude:.6f}, {anchor.longitude:.6f}")

            if config.OUTPUT_CONFIG["enable_console_print"] and self.accepted_count % print_interval == 0:
                location = result.location
                print(f"[replay] t={location.timestamp_ms} lat={location.latitude:.7f} "
                      f"lon={location.longitude:.7f} acc={location.accuracy_m:.1f}m "
                      f"speed={location.speed_mps:.2f}m/s")

        return self.accepted_count

    def print_summary(self):
        """Print replay totals and the pipeline metrics."""
        print("\n" + "=" * 60)
        print("               Replay finished")
        print("=" * 60)
        if self.total_count > 0:
            acceptance = self.accepted_count / self.total_count * 100
            print(f"Fixes read: {self.total_count}")
            print(f"Fixes accepted: {self.accepted_count}")
            print(f"Acceptance rate: {acceptance:.1f}%")
        print(f"Alarm transitions: {len(self.transitions)}")
        state = self.pipeline.alarm_state
        print(f"Final alarm state: {state.name if state is not None else 'no anchor'}")
        print("=" * 60)

        self.pipeline.metrics.print_summary()


def main():
    """Entry point."""
    parser = argparse.ArgumentParser(description='Anchor watch track replay')
    parser.add_argument('track', type=Path,
                        help='CSV track file')
    parser.add_argument('--anchor-lat', type=float, default=None,
                        help='Anchor latitude (degrees)')
    parser.add_argument('--anchor-lon', type=float, default=None,
                        help='Anchor longitude (degrees)')
    parser.add_argument('--radius', '-r', type=float, default=None,
                        help='Alarm radius (m)')
    parser.add_argument('--anchor-first', action='store_true',
                        help='Drop the anchor at the first accepted fix')
    parser.add_argument('--debug', '-d', action='store_true',
                        help='Enable debug logging')

    args = parser.parse_args()

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    if (args.anchor_lat is None) != (args.anchor_lon is None):
        parser.error('--anchor-lat and --anchor-lon must be given together')

    if not args.track.exists():
        logger.error(f"Track file not found: {args.track}")
        sys.exit(1)

    anchor = None
    if args.anchor_lat is not None:
        anchor = (args.anchor_lat, args.anchor_lon)

    replay = AnchorWatchReplay(anchor=anchor, radius_m=args.radius, anchor_first=args.anchor_first)
    replay.run(load_track(args.track))
    replay.print_summary()


if __name__ == "__main__":
    main()
