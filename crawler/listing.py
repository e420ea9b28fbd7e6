"""Deduplication and ordering of chapter lists."""
from typing import Iterable, List

from schemas import Chapter


def sort_chapters(chapters: Iterable[Chapter]) -> List[Chapter]:
    """
    Deduplicate chapters by id and order them by chapter number.

    The first occurrence of an id wins. The sort is stable, so chapters
    sharing a number keep their input order.
    """
    seen = set()
    unique = []
    for chapter in chapters:
        if chapter.id in seen:
            continue
        seen.add(chapter.id)
        unique.append(chapter)
    unique.sort(key=lambda chapter: chapter.chap_num)
    return unique
