from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Protocol, Sequence
from uuid import UUID
import logging
import random

from sqlalchemy import or_

from storybook.core.config import settings
from storybook.models import Story, Tag
from storybook.services.story_store import HistoryEntry

logger = logging.getLogger(__name__)


# Weighting
FAVORITE_WEIGHT = 3
BASE_WEIGHT = 1
TOP_TAG_COUNT = 3

# Fallback filling
MIN_RECOMMENDATIONS = 3
FILL_EXTRA = 3

# Most viewed first; id keeps equal view counts in a stable order
POPULARITY_ORDER = (Story.views.desc(), Story.id)


class NoProfileError(Exception):
    """Raised when a user has no reading history to derive preferences from."""


class StoryNotFoundError(Exception):
    """Raised when a seed story id does not resolve to a story."""

    def __init__(self, story_id):
        super().__init__(f"Story {story_id} not found")
        self.story_id = story_id


class StorySource(Protocol):
    def find_by_id(self, story_id: UUID) -> Optional[Story]: ...

    def find_all(self, *criteria, order_by: Sequence = (), limit: Optional[int] = None) -> List[Story]: ...

    def find_ids(self, *criteria, order_by: Sequence = ()) -> List[UUID]: ...

    def find_many(self, story_ids: Iterable[UUID]) -> List[Story]: ...


class HistorySource(Protocol):
    def find_history_for_user(self, user_id: UUID) -> List[HistoryEntry]: ...


@dataclass
class PreferenceProfile:
    """Weighted tag/category summary of a user's history. Rebuilt on every request."""
    tag_weights: dict = field(default_factory=dict)
    category_weights: dict = field(default_factory=dict)
    read_story_ids: set = field(default_factory=set)

    @property
    def top_tags(self) -> List[str]:
        return _heaviest(self.tag_weights, TOP_TAG_COUNT)

    @property
    def top_category(self) -> Optional[str]:
        ranked = _heaviest(self.category_weights, 1)
        return ranked[0] if ranked else None


def _heaviest(weights: dict, n: int) -> List[str]:
    # sorted() is stable, so equal weights keep first-seen order
    ranked = sorted(weights.items(), key=lambda item: item[1], reverse=True)
    return [key for key, _ in ranked[:n]]


def record_weight(entry: HistoryEntry) -> int:
    """
    Weight of one reading record: favorites count triple, repeated reads add up.

    A record with times_read == 0 (created by a favorite toggle, or read before the
    counter was incremented) still contributes a single read.
    """
    return (FAVORITE_WEIGHT if entry.is_favorite else BASE_WEIGHT) + max(entry.times_read, 1)


def build_preference_profile(history: Iterable[HistoryEntry]) -> PreferenceProfile:
    """
    Accumulate tag and category weights over a user's reading history.

    Raises:
        NoProfileError: if the history is empty
    """
    profile = PreferenceProfile()
    for entry in history:
        profile.read_story_ids.add(entry.story_id)
        weight = record_weight(entry)

        for tag in entry.tags:
            profile.tag_weights[tag] = profile.tag_weights.get(tag, 0) + weight

        if entry.category_label:
            label = entry.category_label
            profile.category_weights[label] = profile.category_weights.get(label, 0) + weight

    if not profile.read_story_ids:
        raise NoProfileError("User has no reading history")

    return profile


def _excluding(story_ids) -> list:
    return [Story.id.not_in(list(story_ids))] if story_ids else []


def get_trending_stories(
    store: StorySource,
    limit: int,
    exclude_ids: Iterable[UUID] = (),
) -> List[Story]:
    """Most viewed stories, optionally skipping some ids."""
    return store.find_all(*_excluding(set(exclude_ids)), order_by=POPULARITY_ORDER, limit=limit)


def select_candidates(
    store: StorySource,
    profile: PreferenceProfile,
    limit: Optional[int] = None,
) -> List[Story]:
    """
    Unread stories in the user's top category or sharing one of their top tags,
    most viewed first. A profile with neither yields no candidates.
    """
    limit = limit or settings.RECOMMENDATION_LIMIT
    top_tags = profile.top_tags
    top_category = profile.top_category

    matches = []
    if top_category:
        matches.append(Story.category_label == top_category)
    if top_tags:
        matches.append(Story.tag_links.any(Tag.name.in_(top_tags)))

    if not matches:
        return []

    return store.find_all(
        or_(*matches),
        *_excluding(profile.read_story_ids),
        order_by=POPULARITY_ORDER,
        limit=limit,
    )


def fill_with_trending(
    store: StorySource,
    recommendations: List[Story],
    read_story_ids: Iterable[UUID],
    extra: int = FILL_EXTRA,
    cap: Optional[int] = None,
) -> List[Story]:
    """Top up a short recommendation list with popular stories the user hasn't read."""
    cap = cap or settings.RECOMMENDATION_LIMIT
    if len(recommendations) >= MIN_RECOMMENDATIONS:
        return recommendations[:cap]

    exclude = set(read_story_ids) | {story.id for story in recommendations}
    padding = get_trending_stories(store, limit=extra, exclude_ids=exclude)
    logger.debug(
        "Padding %d candidates with %d trending stories", len(recommendations), len(padding)
    )
    return (list(recommendations) + padding)[:cap]


def get_recommendations(
    story_store: StorySource,
    history_store: HistorySource,
    user_id: UUID,
) -> List[Story]:
    """
    Personalized feed for a user.

    Users without history get the global top stories by views. Everyone else gets
    unread stories matching their favourite tags/category, padded with trending
    stories when fewer than three match.
    """
    history = history_store.find_history_for_user(user_id)
    try:
        profile = build_preference_profile(history)
    except NoProfileError:
        logger.info("User %s has no reading history, serving trending stories", user_id)
        return get_trending_stories(story_store, limit=settings.TRENDING_LIMIT)

    logger.debug(
        "User %s profile: top_tags=%s top_category=%s read=%d",
        user_id,
        profile.top_tags,
        profile.top_category,
        len(profile.read_story_ids),
    )
    candidates = select_candidates(story_store, profile)
    return fill_with_trending(story_store, candidates, profile.read_story_ids)


def get_similar_stories(
    store: StorySource,
    story_id: UUID,
    rng: Optional[random.Random] = None,
    limit: Optional[int] = None,
) -> List[Story]:
    """
    Random sample of stories sharing the seed's category or at least one of its tags.

    Raises:
        StoryNotFoundError: if the seed story does not exist
    """
    rng = rng or random.Random()
    limit = limit or settings.SIMILAR_LIMIT

    seed = store.find_by_id(story_id)
    if seed is None:
        raise StoryNotFoundError(story_id)

    related = []
    if seed.category_label:
        related.append(Story.category_label == seed.category_label)
    seed_tag_ids = [tag.id for tag in seed.tag_links]
    if seed_tag_ids:
        related.append(Story.tag_links.any(Tag.id.in_(seed_tag_ids)))

    if not related:
        return []

    # Fixed id order so a seeded rng always draws the same sample
    match_ids = store.find_ids(Story.id != seed.id, or_(*related), order_by=(Story.id,))
    chosen = rng.sample(match_ids, min(limit, len(match_ids)))
    return store.find_many(chosen)
