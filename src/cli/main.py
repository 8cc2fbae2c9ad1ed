from __future__ import annotations

import argparse
import logging
import sys
from typing import Any, Dict, List, Optional

from dotenv import find_dotenv, load_dotenv

from common.daterange import DateRanges
from common.runner import RunOptions, UsageError
from common.settings import (
    SettingsError,
    load_credentials,
    load_settings,
    save_credentials,
    state_path,
)
from common.strava import StravaClient, StravaError
from gpx import handler as gpx_handler
from kml import handler as kml_handler
from pdf import handler as pdf_handler
from state import CHANNELS, JsonStateStore, StateSaveError, StateTracker


logger = logging.getLogger("strava_log")


def _date_ranges(value: str) -> DateRanges:
    try:
        return DateRanges.parse(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="strava-log",
        description="Generate KML, GPX and bikelog XML files from Strava activities.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Logging level (default: %(default)s).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Shortcut for --log-level DEBUG.")
    parser.add_argument("--imperial", action="store_true", help="Use miles and feet.")
    parser.add_argument(
        "--dry-run", action="store_true", help="Fetch and render but write neither output nor state."
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("athlete", help="Show athlete profile and bikes.")
    sub.add_parser("state", help="Show when each output was last updated.")

    date_help = (
        "Date range(s), e.g. 20240101-20241231 or 2024,202501-. "
        "Defaults to activities since the last run."
    )

    kml = sub.add_parser("kml", help="Generate a KML file of activity tracks.")
    kml.add_argument("--date", type=_date_ranges, help=date_help)
    kml.add_argument("-o", "--output", help="KML file (default: kmlFile setting).")
    kml.add_argument("--streams", action="store_true", help="Use full GPS streams instead of summary polylines.")
    kml.add_argument("--segments", action="store_true", help="Add a folder of starred segments.")

    gpx = sub.add_parser("gpx", help="Write one GPX file per activity.")
    gpx.add_argument("--date", type=_date_ranges, required=True, help="Date range(s), e.g. 20240101-20241231.")
    gpx.add_argument("-o", "--output", help="Output directory (default: gpxDir setting).")

    pdf = sub.add_parser("pdf", help="Generate Acroforms XML data for a bikelog PDF.")
    pdf.add_argument("--date", type=_date_ranges, help=date_help)
    pdf.add_argument("-o", "--output", help="XML file (default: formsDataFile setting).")

    return parser


def _options(args: argparse.Namespace) -> RunOptions:
    return RunOptions(
        date=getattr(args, "date", None),
        output=getattr(args, "output", None),
        imperial=args.imperial,
        dry_run=args.dry_run,
        streams=getattr(args, "streams", False),
        segments=getattr(args, "segments", False),
    )


def _make_client() -> StravaClient:
    return StravaClient(load_credentials(), on_token_refresh=save_credentials)


def _show_state(tracker: StateTracker) -> None:
    for channel in CHANNELS:
        print(f"{channel}: {tracker.get_last_updated(channel) or 'never'}")  # type: ignore[arg-type]


def _show_athlete(client: StravaClient) -> None:
    athlete = client.athlete()
    print(f"{athlete.name} (id {athlete.id})")
    for bike in athlete.bikes:
        marker = " *" if bike.primary else ""
        print(f"  bike {bike.id}: {bike.name}{marker}")


def dispatch(args: argparse.Namespace) -> Optional[Dict[str, Any]]:
    settings = load_settings()
    tracker = StateTracker(JsonStateStore(state_path()))
    tracker.load()

    if args.command == "state":
        _show_state(tracker)
        return None

    opts = _options(args)
    with _make_client() as client:
        if args.command == "athlete":
            _show_athlete(client)
            return None
        if args.command == "kml":
            return kml_handler.run(opts, client=client, tracker=tracker, settings=settings)
        if args.command == "gpx":
            return gpx_handler.run(opts, client=client, settings=settings)
        if args.command == "pdf":
            return pdf_handler.run(opts, client=client, tracker=tracker, settings=settings)
    raise UsageError(f"Unknown command {args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    load_dotenv(find_dotenv(usecwd=True))

    try:
        result = dispatch(args)
    except UsageError as exc:
        logger.error("%s", exc)
        print("", file=sys.stderr)
        parser.print_help(sys.stderr)
        return 2
    except (StravaError, SettingsError, StateSaveError, OSError) as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1

    if result is not None:
        logger.info("%s done: %s", args.command, result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
