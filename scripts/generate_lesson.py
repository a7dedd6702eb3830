"""
Generate an AI lesson and optionally archive it for review.

Archiving turns every vocabulary item into a review item due today.
Without --user the lesson is archived in the local store; with --user it
goes to the remote store for that account.

Usage:
    python -m scripts.generate_lesson "at the train station" [--level N4] [--archive] [--user ID]
"""

from __future__ import annotations

import argparse
import asyncio
import json
from typing import Optional

from core import config
from core.content.lesson_generator import generate_lesson
from core.errors import ArchiveError, ConfigError, ContentGenerationError
from core.schemas import JLPTLevel, Lesson
from core.storage.gateway import build_gateway


def print_lesson(lesson: Lesson) -> None:
    print("=" * 60)
    print(f"{lesson.title_text}  ({lesson.level.value}, {lesson.topic})")
    print("=" * 60)
    print(f"\nVocabulary ({len(lesson.vocabulary)}):")
    for vocab in lesson.vocabulary:
        print(f"  {vocab.text} [{vocab.reading}] - {vocab.meaning}")
    print(f"\nGrammar ({len(lesson.grammar)}):")
    for point in lesson.grammar:
        print(f"  {point.point}: {point.explanation}")


async def run(topic: str, level: JLPTLevel, archive: bool, user: Optional[str], as_json: bool) -> int:
    gateway = build_gateway()
    settings = await gateway.load_settings(user)

    try:
        lesson = await asyncio.to_thread(generate_lesson, topic, level, settings)
    except (ConfigError, ContentGenerationError) as exc:
        print(f"✗ {exc}")
        return 1

    if as_json:
        print(json.dumps(lesson.to_document(), ensure_ascii=False, indent=2))
    else:
        print_lesson(lesson)

    if archive:
        try:
            items = await gateway.archive_lesson(user, lesson)
        except ArchiveError as exc:
            print(f"\n✗ Archive failed, nothing was saved: {exc}")
            return 1
        print(f"\n✓ Archived lesson {lesson.id} ({len(items)} review items)")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Generate a Japanese lesson with AI")
    parser.add_argument("topic", help="Lesson topic")
    parser.add_argument(
        "--level",
        choices=[level.value for level in JLPTLevel],
        default=JLPTLevel.N5.value,
        help="JLPT level (default: N5)"
    )
    parser.add_argument(
        "--archive",
        action="store_true",
        help="Archive the lesson and schedule its vocabulary for review"
    )
    parser.add_argument(
        "--user",
        help="Account id (omit for local, anonymous storage)"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the lesson as JSON"
    )

    args = parser.parse_args()
    config.setup_logging()

    raise SystemExit(asyncio.run(run(args.topic, JLPTLevel(args.level), args.archive, args.user, args.json)))


if __name__ == "__main__":
    main()
