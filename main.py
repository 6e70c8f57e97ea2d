import argparse
import datetime as dt
import logging
import threading

from venuebook.api_client import ApiClient, SseSlotFeed
from venuebook.calendar_view import CalendarContext, classify
from venuebook.config import load_settings
from venuebook.day_offs import expand
from venuebook.domain import SlotKey, SlotUpdate
from venuebook.live_slots import LiveSlotStream
from venuebook.resolver import include_date, resolve_availability


def _setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )


def _parse_date(raw: str) -> dt.date:
    try:
        return dt.date.fromisoformat(raw)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Expected YYYY-MM-DD, got {raw!r}") from e


def _format_update(update: SlotUpdate) -> str:
    if update.slots is None:
        return f"{update.key.date.isoformat()}: slots unknown (feed unavailable)"
    if not update.slots:
        return f"{update.key.date.isoformat()}: no bookable slots"
    lines = [f"{update.key.date.isoformat()}: {len(update.slots)} bookable slots"]
    for s in update.slots:
        lines.append(f"  • {s.start_time:%H:%M}-{s.end_time:%H:%M}")
    return "\n".join(lines)


def main() -> int:
    parser = argparse.ArgumentParser(description="venuebook: package availability and live time slots")
    parser.add_argument("--package-id", type=int, required=True, help="Package to resolve")
    parser.add_argument("--date", type=_parse_date, help="Date to classify / watch (YYYY-MM-DD)")
    parser.add_argument("--keep-date", type=_parse_date, help="Already-booked date to keep in the list")
    parser.add_argument("--watch", action="store_true", help="Follow the live slot feed for --date")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    _setup_logging(args.verbose)
    log = logging.getLogger(__name__)
    settings = load_settings()

    client = ApiClient.from_settings(settings)
    schedule = client.fetch_package(args.package_id)
    records = client.fetch_day_offs(settings.location_id)

    today = dt.date.today()
    result = resolve_availability(schedule, records, today, settings.max_days_ceiling)
    dates = include_date(result.bookable_dates, args.keep_date)

    log.info("Package %s (%s): %d bookable dates", schedule.package_id, schedule.name, len(dates))
    for d in dates:
        print(d.isoformat())

    if args.date is None:
        return 0

    ctx = CalendarContext.from_availability(result, today, breaks=schedule.breaks, selected_date=args.date)
    print(f"{args.date.isoformat()}: {classify(args.date, ctx).value}")

    if not args.watch:
        return 0

    stream = LiveSlotStream(
        SseSlotFeed.from_settings(settings),
        exceptions=expand(records, today),
        min_notice_hours=schedule.window.min_notice_hours,
    )
    stream.on_update(lambda update: print(_format_update(update), flush=True))
    stream.connect(SlotKey(package_id=schedule.package_id, date=args.date))

    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        log.info("Stopping")
    finally:
        stream.close()

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
