"""Example usage of GOStopTracker."""

import logging
import sys
import time
from datetime import datetime
from pathlib import Path

# Add src to path so we can import gotrack
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from gotrack.config import DEFAULT_STOP_ID
from gotrack.formatting import (
    delay_text,
    direction_label,
    format_time,
    minutes_until,
    updated_text,
)
from gotrack.models import Direction
from gotrack.refresh import RefreshGuard, request_refresh
from gotrack.stop_tracker import GOStopTracker

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


def print_stop_board(tracker: GOStopTracker, stop_id: str, direction: Direction, limit: int = 3):
    """
    Fetch and display upcoming trips for a stop.

    Args:
        tracker: Tracker to poll.
        stop_id: GO stop code (e.g., "UN").
        direction: Direction filter.
        limit: Number of trips to show.
    """
    board = tracker.get_stop_board(stop_id, direction)
    now = time.time()

    print(f"\n{'='*70}")
    print(f"Stop: {board.stop_id}    {direction_label(direction)}")
    print(f"{'='*70}")

    if not board.trips:
        print("No upcoming trips")
    for trip in board.trips[:limit]:
        print(f"{trip.vehicle_label:<40} {trip.direction_text}")
        print(
            f"  Departure: {format_time(trip.departure_time)}"
            f"    {minutes_until(trip.departure_time, now)} min left"
        )
        delay = delay_text(trip.delay_seconds)
        if delay:
            print(f"  {delay}")

    print(f"\n{updated_text(board.last_fetch_time, datetime.now())}\n")


def interactive_mode(tracker: GOStopTracker):
    """
    Run in interactive mode. Enter a stop code, optionally followed by a
    direction (inbound/outbound/all). Type 'refresh' to re-poll the last stop.
    """
    print("GO Transit Stop Tracker - Interactive Mode")
    print("Enter a stop code and optional direction, e.g. 'UN inbound'")
    print("(Type 'stops' to list stations, 'refresh' to reload, 'quit' to exit)\n")

    guard = RefreshGuard()
    stop_id, direction = DEFAULT_STOP_ID, Direction.ALL

    while True:
        try:
            user_input = input("Stop (or 'quit'): ").strip()

            if user_input.lower() in ["quit", "q", "exit"]:
                print("Goodbye!")
                break

            if not user_input:
                continue

            if user_input.lower() == "stops":
                print(", ".join(tracker.list_stop_ids()) or "No stops found")
                continue

            if user_input.lower() == "refresh":
                if not request_refresh(guard, lambda: print_stop_board(tracker, stop_id, direction)):
                    print(f"Please wait {int(guard.seconds_until_allowed())}s before refreshing")
                continue

            parts = user_input.split()
            stop_id = parts[0].upper()
            direction = Direction.parse(parts[1]) if len(parts) > 1 else Direction.ALL
            tracker.favorite_stop = stop_id
            print_stop_board(tracker, stop_id, direction)

        except ValueError as e:
            print(f"Error: {e}")
        except KeyboardInterrupt:
            print("\n\nGoodbye!")
            break


if __name__ == "__main__":
    tracker = GOStopTracker()
    try:
        if len(sys.argv) > 1:
            # Command line mode: stop code and optional direction
            direction = Direction.parse(sys.argv[2]) if len(sys.argv) > 2 else Direction.ALL
            print_stop_board(tracker, sys.argv[1].upper(), direction)
        else:
            interactive_mode(tracker)
    finally:
        tracker.cleanup()
