from dataclasses import dataclass
from typing import Iterable, Sequence

from .ordering import SECTIONS

INDICATOR_GAP = 2.0
EMPTY_CONTAINER_INSET = 12.0


@dataclass(frozen=True)
class Rect:
    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def midpoint_y(self) -> float:
        return self.top + self.height / 2

    def contains(self, x: float, y: float) -> bool:
        return self.left <= x <= self.right and self.top <= y <= self.bottom


@dataclass(frozen=True)
class CardBox:
    movie_id: str
    rect: Rect


@dataclass(frozen=True)
class DropContainer:
    section: str
    rect: Rect
    cards: tuple[CardBox, ...] = ()


@dataclass(frozen=True)
class DropContext:
    section: str
    index: int
    target_id: str | None = None


def _candidate_cards(cards: Iterable[CardBox], dragged_id: str | None) -> list[CardBox]:
    return [card for card in cards if card.movie_id != dragged_id]


def drop_index(cards: Iterable[CardBox], pointer_y: float, dragged_id: str | None = None) -> int:
    candidates = _candidate_cards(cards, dragged_id)
    for index, card in enumerate(candidates):
        if pointer_y < card.rect.midpoint_y:
            return index
    return len(candidates)


def resolve_drop_target(
    x: float,
    y: float,
    containers: Sequence[DropContainer],
    dragged_id: str | None = None,
) -> DropContext | None:
    for container in containers:
        if container.section not in SECTIONS:
            continue
        if not container.rect.contains(x, y):
            continue
        candidates = _candidate_cards(container.cards, dragged_id)
        index = drop_index(candidates, y)
        target_id = candidates[index].movie_id if index < len(candidates) else None
        return DropContext(section=container.section, index=index, target_id=target_id)
    return None


def indicator_top(container: DropContainer, index: int, dragged_id: str | None = None) -> float:
    candidates = _candidate_cards(container.cards, dragged_id)
    if not candidates:
        return max(0.0, container.rect.top + EMPTY_CONTAINER_INSET)
    if index >= len(candidates):
        return max(0.0, candidates[-1].rect.bottom + INDICATOR_GAP)
    return max(0.0, candidates[index].rect.top - INDICATOR_GAP)
