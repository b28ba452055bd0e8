"""storyweave — dev launcher. Plays a storyline in the terminal."""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

DATA_DIR = os.getenv("DATA_DIR", str(ROOT / "data"))


def _print_node(event):
    node = event.data["node"]
    if node is None:
        return
    meta = node.metadata
    if meta.location or meta.year:
        print(f"\n== {meta.location or ''} {f'({meta.year})' if meta.year else ''} ==")
    print(f"\n{node.text}\n")


def _print_error(event):
    print(f"[error] {event.data['operation']}: {event.data['message']}", file=sys.stderr)


async def play(args):
    from storyweave.app import create_session
    from storyweave.events import EventType

    session = await create_session(args.data_dir)
    session.subscribe(EventType.NODE_CHANGED, _print_node)
    session.subscribe(EventType.ERROR, _print_error)

    if args.list:
        for summary in await session.list_storylines():
            print(f"{summary.id}  {summary.title}  (updated {summary.last_updated:%Y-%m-%d %H:%M})")
        return

    if args.resume:
        ok = await session.resume(args.resume)
    else:
        kind = "custom" if args.custom else "historical"
        accuracy = "creative" if args.creative else "accurate"
        ok = await session.start(args.character, kind, accuracy)
    if not ok:
        return

    while True:
        storyline = await session.engine.get_storyline(session.storyline_id)
        choices = storyline.nodes[session.node_id].choices or []
        stats = await session.progress()
        if not choices:
            print(f"-- The End ({stats.completion_percent}%) --")
            break
        for i, choice in enumerate(choices, 1):
            print(f"  {i}. {choice.text}  [{choice.historical_accuracy}]")
        answer = (await asyncio.to_thread(input, "\nChoose (number, s=save, q=quit): ")).strip()
        if answer == "q":
            break
        if answer == "s":
            if await session.save():
                print("Saved.")
            continue
        if not answer.isdigit() or not 1 <= int(answer) <= len(choices):
            print("Pick one of the listed numbers.")
            continue
        await session.choose(choices[int(answer) - 1].id)

    await session.save()
    for achievement in (await session.progress()).achievements:
        print(f"* {achievement.label}")
    print(f"\nStoryline id: {session.storyline_id}")


def main():
    parser = argparse.ArgumentParser(description="storyweave terminal player")
    parser.add_argument("--data-dir", type=Path, default=Path(DATA_DIR),
                        help="Data storage directory (default: ./data)")
    parser.add_argument("--character", default="1",
                        help="Character id (default: 1, Mahatma Gandhi)")
    parser.add_argument("--custom", action="store_true",
                        help="Treat --character as a custom character id")
    parser.add_argument("--creative", action="store_true",
                        help="Creative accuracy mode instead of accurate")
    parser.add_argument("--resume", metavar="ID", help="Resume a saved storyline")
    parser.add_argument("--list", action="store_true", help="List saved storylines and exit")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        asyncio.run(play(args))
    except (KeyboardInterrupt, EOFError):
        print("\nBye.")


if __name__ == "__main__":
    main()
