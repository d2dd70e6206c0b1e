"""
Tag registry synchronization.

Stories carry free-form tags typed by admins. Each distinct tag (by slug) lives
once in the `tags` table with a usage count, and stories link to those rows.
"""
import json
import logging
import re
from typing import Any, List

from sqlalchemy import or_
from sqlalchemy.orm import Session

from storybook.models import Story, Tag

logger = logging.getLogger(__name__)

# Anything that is not a word character, whitespace, Arabic letter or hyphen
_SLUG_STRIP = re.compile(r"[^\w\s\u0600-\u06FF-]")
_WHITESPACE = re.compile(r"\s+")


def slugify(name: str) -> str:
    slug = _SLUG_STRIP.sub("", name.strip().lower())
    return _WHITESPACE.sub("-", slug)


def parse_tags(raw: Any) -> List[str]:
    """
    Normalize tag input into a list of trimmed, non-empty strings.

    Accepts a list, a JSON array string or a comma-separated string; anything
    else (or malformed content) becomes an empty list.
    """
    if raw is None:
        return []

    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
            items = parsed if isinstance(parsed, list) else [raw]
        except json.JSONDecodeError:
            items = raw.split(",")
    elif isinstance(raw, (list, tuple)):
        items = list(raw)
    else:
        return []

    return [item.strip() for item in items if isinstance(item, str) and item.strip()]


def find_or_create_tag(db: Session, name: str) -> Tag:
    """Match an existing tag by exact name or slug, or register a new one with count 0."""
    slug = slugify(name)
    existing = db.query(Tag).filter(or_(Tag.name == name, Tag.slug == slug)).first()
    if existing:
        return existing

    tag = Tag(name=name, slug=slug, count=0)
    db.add(tag)
    db.flush()
    logger.info("Registered new tag %r (slug=%s)", name, slug)
    return tag


def sync_story_tags(db: Session, story: Story, raw_tags: Any) -> List[Tag]:
    """
    Replace a story's tags with the given input and keep registry counts in step.

    Duplicate input (same slug) collapses to one tag. Newly attached tags gain one
    use, detached tags lose one; tags that stay attached are left untouched.
    Does not commit.
    """
    resolved: List[Tag] = []
    seen_slugs = set()
    for name in parse_tags(raw_tags):
        slug = slugify(name)
        if not slug or slug in seen_slugs:
            continue
        seen_slugs.add(slug)
        tag = find_or_create_tag(db, name)
        if tag not in resolved:
            resolved.append(tag)

    current_ids = {tag.id for tag in story.tag_links}
    resolved_ids = {tag.id for tag in resolved}

    for tag in resolved:
        if tag.id not in current_ids:
            tag.count = (tag.count or 0) + 1
    for tag in story.tag_links:
        if tag.id not in resolved_ids:
            tag.count = max((tag.count or 0) - 1, 0)

    story.tag_links = resolved
    return resolved


def release_story_tags(story: Story) -> None:
    """Decrement counts for every tag of a story that is about to be deleted."""
    for tag in story.tag_links:
        tag.count = max((tag.count or 0) - 1, 0)


def list_tags(db: Session) -> List[Tag]:
    return db.query(Tag).order_by(Tag.count.desc(), Tag.name).all()
