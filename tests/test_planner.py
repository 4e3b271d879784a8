import pytest

from watchrank.drop_target import DropContext
from watchrank.ordering import WatchlistMovie
from watchrank.planner import plan_reorder, section_insertion_index


def _movie(movie_id, rank, watched=False):
    return WatchlistMovie(
        id=movie_id,
        title=movie_id.upper(),
        poster_url="https://img.example.com/p.jpg",
        watch_url=f"https://watch.example.com/{movie_id}",
        year=2000,
        rank=rank,
        watched=watched,
    )


@pytest.fixture
def abc():
    return [_movie("a", 1), _movie("b", 2), _movie("c", 3)]


@pytest.fixture
def mixed():
    # Unwatched u1, u2, x; watched w1, w2 interleaved by rank.
    return [
        _movie("u1", 1),
        _movie("w1", 2, watched=True),
        _movie("u2", 3),
        _movie("w2", 4, watched=True),
        _movie("x", 5),
    ]


def _ranks(plan):
    return {m.id: m.rank for m in plan.next_movies}


def test_drag_a_before_c(abc):
    plan = plan_reorder(abc, "a", DropContext("master", 1, "c"), "master", mode="master")
    assert plan.changed is True
    assert plan.ordered_ids == ["b", "a", "c"]
    assert _ranks(plan) == {"b": 1, "a": 2, "c": 3}
    assert plan.moved_id == "a"
    assert plan.from_rank == 1
    assert plan.to_rank == 2
    assert plan.status_message == "Order updated."


def test_drop_onto_own_position_is_noop(abc):
    # The resolver never reports the dragged card, so "own position" means
    # "before the next card".
    plan = plan_reorder(abc, "b", DropContext("master", 1, "c"), "master", mode="master")
    assert plan.changed is False
    assert plan.ordered_ids == ["a", "b", "c"]


def test_drop_last_item_at_end_is_noop(abc):
    plan = plan_reorder(abc, "c", DropContext("master", 2, None), "master", mode="master")
    assert plan.changed is False


def test_master_mode_without_target_appends(abc):
    plan = plan_reorder(abc, "a", DropContext("master", 2, None), "master", mode="master")
    assert plan.ordered_ids == ["b", "c", "a"]


def test_master_mode_ignores_sections(mixed):
    plan = plan_reorder(mixed, "x", DropContext("watched", 0, "u1"), "unwatched", mode="master")
    dragged = next(m for m in plan.next_movies if m.id == "x")
    assert dragged.watched is False
    assert plan.ordered_ids[0] == "x"
    assert plan.moved_across_sections is False


def test_unwatched_into_watched_rail_without_target(mixed):
    plan = plan_reorder(mixed, "x", DropContext("watched", 2, None), "unwatched", mode="section")
    dragged = next(m for m in plan.next_movies if m.id == "x")
    assert dragged.watched is True
    # Immediately after the last watched movie (w2).
    assert plan.ordered_ids == ["u1", "w1", "u2", "w2", "x"]
    assert [m.rank for m in plan.next_movies] == [1, 2, 3, 4, 5]
    assert plan.changed is True
    assert plan.moved_across_sections is True
    assert plan.status_message == "Moved to Watched"


def test_watched_into_unwatched_rail_without_target(mixed):
    plan = plan_reorder(mixed, "w2", DropContext("unwatched", 3, None), "watched", mode="section")
    dragged = next(m for m in plan.next_movies if m.id == "w2")
    assert dragged.watched is False
    # Before the first watched movie (w1).
    assert plan.ordered_ids == ["u1", "w2", "w1", "u2", "x"]
    assert plan.status_message == "Moved to Unwatched"


def test_section_drop_with_target_inserts_before_target(mixed):
    plan = plan_reorder(mixed, "x", DropContext("watched", 0, "w1"), "unwatched", mode="section")
    assert plan.ordered_ids == ["u1", "x", "w1", "u2", "w2"]
    assert next(m for m in plan.next_movies if m.id == "x").watched is True


def test_missing_target_falls_back_to_section_boundary(mixed):
    plan = plan_reorder(mixed, "u1", DropContext("watched", 0, "gone"), "unwatched", mode="section")
    assert plan.ordered_ids == ["w1", "u2", "w2", "u1", "x"]


def test_section_flip_without_reordering_is_a_change():
    movies = [_movie("a", 1), _movie("b", 2, watched=True)]
    plan = plan_reorder(movies, "a", DropContext("watched", 0, "b"), "unwatched", mode="section")
    assert plan.ordered_ids == ["a", "b"]
    assert plan.changed is True


def test_same_section_drop_is_not_cross_section(mixed):
    plan = plan_reorder(mixed, "x", DropContext("unwatched", 0, "u1"), "unwatched", mode="section")
    assert plan.ordered_ids[0] == "x"
    assert plan.moved_across_sections is False


def test_empty_watched_rail_appends_at_end():
    movies = [_movie("a", 1), _movie("b", 2)]
    plan = plan_reorder(movies, "a", DropContext("watched", 0, None), "unwatched", mode="section")
    assert plan.ordered_ids == ["b", "a"]
    assert plan.next_movies[-1].watched is True


def test_unknown_dragged_id_is_unchanged(abc):
    plan = plan_reorder(abc, "zzz", DropContext("master", 0, "a"), "master", mode="master")
    assert plan.changed is False
    assert plan.ordered_ids == ["a", "b", "c"]


def test_input_is_not_mutated(mixed):
    before = list(mixed)
    plan_reorder(mixed, "x", DropContext("watched", 0, None), "unwatched", mode="section")
    assert mixed == before


def test_unsorted_input_is_ranked_first():
    movies = [_movie("c", 3), _movie("a", 1), _movie("b", 2)]
    plan = plan_reorder(movies, "c", DropContext("master", 0, "a"), "master", mode="master")
    assert plan.ordered_ids == ["c", "a", "b"]


def test_unknown_mode_rejected(abc):
    with pytest.raises(ValueError):
        plan_reorder(abc, "a", DropContext("master", 0, None), "master", mode="grid")


def test_section_insertion_index():
    movies = [_movie("u", 1), _movie("w", 2, watched=True), _movie("v", 3)]
    assert section_insertion_index(movies, "watched") == 2
    assert section_insertion_index(movies, "unwatched") == 1
    assert section_insertion_index(movies, "master") == 3
    unwatched_only = [_movie("u", 1)]
    assert section_insertion_index(unwatched_only, "watched") == 1
    assert section_insertion_index(unwatched_only, "unwatched") == 1


def test_watched_changes_lists_only_flipped_ids(mixed, abc):
    plan = plan_reorder(mixed, "x", DropContext("watched", 0, "w1"), "unwatched", mode="section")
    assert plan.watched_changes == {"x": True}

    plan = plan_reorder(abc, "a", DropContext("master", 2, None), "master", mode="master")
    assert plan.watched_changes == {}
