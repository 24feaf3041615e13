#!/usr/bin/env python3
"""
gpxview-analyze: parse GPX file(s) and print track statistics.

Files are parsed in a pool of worker processes unless --no-pool is given (or
the host cannot start them). A file that fails to parse is reported by name
and does not stop the rest of the batch.
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Optional

from gpxview.analyze.batch import load_files, open_pool
from gpxview.analyze.track import TrackStats, analyze_track, compute_track_elevation_profile
from gpxview.config import load_config
from gpxview.errors import ConfigError
from gpxview.util.logging import configure_logging, log

TSV_HEADER = (
    "file\tpoints\tsegments\tdistance_m\telev_gain_m\telev_loss_m"
    "\tduration_s\tavg_speed_mps\tmin_ele_m\tmax_ele_m"
)


def _fmt(v: Optional[float], spec: str) -> str:
    return "-" if v is None else format(v, spec)


def print_report(name: str, report: dict, *, tsv: bool) -> None:
    stats: TrackStats = report["track"]
    if tsv:
        print(
            f"{name}\t"
            f"{stats.points}\t"
            f"{stats.segments}\t"
            f"{stats.distance:.2f}\t"
            f"{stats.elev_gain:.1f}\t"
            f"{stats.elev_loss:.1f}\t"
            f"{_fmt(stats.duration, '.1f')}\t"
            f"{_fmt(stats.avg_speed, '.3f')}\t"
            f"{_fmt(stats.min_ele, '.1f')}\t"
            f"{_fmt(stats.max_ele, '.1f')}"
        )
        return

    print(f"\n{name}")
    print(f"  points        : {stats.points}")
    print(f"  segments      : {stats.segments}")
    print(f"  waypoints     : {report['waypoints']}")
    print(f"  distance (m)  : {stats.distance:.2f}")
    print(f"  gain/loss (m) : {stats.elev_gain:.1f} / {stats.elev_loss:.1f}")
    print(f"  elevation (m) : {_fmt(stats.min_ele, '.1f')} .. {_fmt(stats.max_ele, '.1f')}")
    print(f"  duration (s)  : {_fmt(stats.duration, '.1f')}")
    print(f"  avg speed m/s : {_fmt(stats.avg_speed, '.3f')}")
    if len(report["segments"]) > 1:
        for i, seg in enumerate(report["segments"], 1):
            print(f"    segment {i:<3}: {seg.points} pts, {seg.distance:.2f} m")


def main(argv: Optional[list[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="gpxview: Analyze GPX file(s).")
    ap.add_argument("gpx", nargs="+", help="One or more GPX files.")
    ap.add_argument("--tsv", action="store_true",
                    help="Print tab-separated output (good for piping).")
    ap.add_argument("--workers", type=int, default=None,
                    help="Worker processes (default: from config, else CPU count).")
    ap.add_argument("--no-pool", action="store_true",
                    help="Parse in this process instead of worker processes.")
    ap.add_argument("--plot", action="store_true",
                    help="Show an elevation profile for each file.")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")

    args = ap.parse_args(argv)
    configure_logging(args.verbose)

    try:
        cfg = load_config()
    except ConfigError as e:
        log(str(e))
        return 2

    paths = [Path(p).expanduser() for p in args.gpx]
    use_converter = cfg.parse.use_converter

    pool = None
    if not args.no_pool and len(paths) > 1:
        size = args.workers or cfg.pool.size
        pool = open_pool(min(size, len(paths)) if size else None, start_method=cfg.pool.start_method)

    try:
        results = load_files(paths, pool=pool, use_converter=use_converter)
    finally:
        if pool is not None:
            pool.shutdown()

    if args.tsv:
        print(TSV_HEADER)

    failed = 0
    for result in results:
        if not result.ok:
            failed += 1
            log(f"Failed: {result.name} ({result.error})")
            continue
        print_report(result.name, analyze_track(result.track), tsv=args.tsv)

        if args.plot and result.track.segments:
            from gpxview.visualize.plot import plot_elevation_profile

            profile = compute_track_elevation_profile(
                result.track,
                threshold=cfg.profile.threshold,
                target=cfg.profile.target,
            )
            if profile:
                plot_elevation_profile(profile, title=result.track.name or result.name, show=True)

    if failed:
        log(f"{failed} of {len(results)} file(s) failed")
    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
