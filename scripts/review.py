"""
Review due vocabulary in the terminal.

Shows each due item, reveals the answer on Enter, and asks for a grade:
  h = hard (forgot), g = good, e = easy, q = quit

Usage:
    python -m scripts.review [--user ID] [--speak]
"""

from __future__ import annotations

import argparse
import asyncio
from typing import Optional

from core import config, speech
from core.errors import SpeechError
from core.schemas import VocabItem
from core.srs import Quality, ReviewSession
from core.storage.gateway import build_gateway

GRADE_KEYS = {
    "h": Quality.HARD,
    "g": Quality.GOOD,
    "e": Quality.EASY,
}


def ask_grade() -> Optional[Quality]:
    """Prompt until a valid grade key is entered; None means quit."""
    while True:
        answer = input("Grade [h]ard / [g]ood / [e]asy / [q]uit: ").strip().lower()
        if answer == "q":
            return None
        if answer in GRADE_KEYS:
            return GRADE_KEYS[answer]


async def save_audio(text: str, settings, index: int) -> None:
    try:
        audio = await asyncio.to_thread(speech.synthesize, text, settings)
    except SpeechError as exc:
        print(f"  (no audio: {exc})")
        return
    path = config.DATA_DIR / f"review_{index}.mp3"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(audio)
    print(f"  audio: {path}")


async def run(user: Optional[str], speak: bool) -> None:
    gateway = build_gateway()
    settings = await gateway.load_settings(user)
    session = ReviewSession(gateway, user)

    total = await session.start()
    owned = await gateway.count_items(user)
    print(f"Due today: {total} of {owned} items")
    if not total:
        print("✓ Nothing to review")
        return

    while not session.finished:
        vocab = VocabItem.model_validate(session.current.payload)
        print("-" * 60)
        print(f"[{session.reviewed + 1}/{session.total}]  {vocab.text}")
        input("  (Enter to reveal)")
        print(f"  {vocab.reading} - {vocab.meaning}")
        if vocab.example.translation:
            print(f"  e.g. {vocab.example.translation}")
        if speak:
            await save_audio(vocab.text, settings, session.reviewed)

        quality = ask_grade()
        if quality is None:
            break
        graded = await session.grade_current(quality)
        print(f"  → level {graded.level}")

    print("=" * 60)
    print(f"Reviewed {session.reviewed} items, {session.remaining} left")


def main():
    parser = argparse.ArgumentParser(description="Review due vocabulary")
    parser.add_argument(
        "--user",
        help="Account id (omit for local, anonymous storage)"
    )
    parser.add_argument(
        "--speak",
        action="store_true",
        help="Save synthesized audio for each word under data/"
    )

    args = parser.parse_args()
    config.setup_logging()

    asyncio.run(run(args.user, args.speak))


if __name__ == "__main__":
    main()
