"""
Script to list all events with their temporal status and gallery sizes from the database.
"""
import asyncio
import sys
from pathlib import Path
from datetime import datetime

# Add parent directory to path to import modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from database import events_collection
from utils.event_time import event_status, system_clock


async def list_event_galleries():
    """List all events with status, time and gallery image count."""
    print("=" * 100)
    print("ALL EVENTS IN DATABASE - Status and Galleries")
    print("=" * 100)

    now = system_clock()
    events = await events_collection.find({}).sort("date", -1).to_list(length=None)
    print(f"\nTotal events in database: {len(events)}  (evaluated at {now:%Y-%m-%d %H:%M})\n")

    status_counts = {}
    past_without_gallery = []

    for idx, event in enumerate(events, 1):
        title = event.get("title", "Untitled")
        date = event.get("date")
        time_str = event.get("time") or "start of day"
        images = event.get("gallery_images") or []

        date_str = date.strftime("%Y-%m-%d") if isinstance(date, datetime) else str(date)
        temporal = event_status(date, event.get("time"), event.get("status"), now) if date else "unknown"

        counts = status_counts.setdefault(temporal, {"total": 0, "images": 0})
        counts["total"] += 1
        counts["images"] += len(images)
        if temporal == "past" and not images:
            past_without_gallery.append(event)

        print(f"\n{idx}. {title}")
        print(f"   ID: {event.get('_id')}")
        print(f"   When: {date_str} at {time_str}")
        print(f"   Status: {event.get('status', 'N/A')} / {temporal}")
        print(f"   Gallery images: {len(images)}")
        print("-" * 100)

    print("\n" + "=" * 100)
    print("SUMMARY BY TEMPORAL STATUS")
    print("=" * 100)
    print(f"\n{'Status':<20} {'Events':<10} {'Gallery Images':<15}")
    print("-" * 100)
    for temporal in sorted(status_counts):
        counts = status_counts[temporal]
        print(f"{temporal:<20} {counts['total']:<10} {counts['images']:<15}")

    print("\n" + "=" * 100)
    print("PAST EVENTS WITHOUT A GALLERY")
    print("=" * 100)
    if past_without_gallery:
        for idx, event in enumerate(past_without_gallery, 1):
            print(f"{idx}. {event.get('title', 'Untitled')} ({event.get('_id')})")
    else:
        print("\nEvery past event has at least one gallery image!")

    print("\n" + "=" * 100)

if __name__ == "__main__":
    asyncio.run(list_event_galleries())
