import pytest

from arena.database.models import Grading
from arena.utils.exceptions import ValidationFailure
from arena.utils.ranking import RankingUtility, SortField, SortOrder


def test_placement_is_dense_rank():
    placements = RankingUtility.placement_map([90, 90, 80])
    assert [placements[score] for score in [90, 90, 80]] == [1, 1, 2]

    placements = RankingUtility.placement_map([10, 30, 30, 20, 5])
    assert placements == {30: 1, 20: 2, 10: 3, 5: 4}


def test_percentile_rank_counts_scores_at_or_below():
    scores = [100, 100, 50]
    cumulative = RankingUtility.cumulative_count_map(scores)
    assert cumulative == {50: 1, 100: 3}

    assert RankingUtility.percentile_rank(100, cumulative, 3) == pytest.approx(100.0)
    assert RankingUtility.percentile_rank(50, cumulative, 3) == pytest.approx(33.333, rel=1e-3)


def test_single_score_is_first_at_full_percentile():
    cumulative = RankingUtility.cumulative_count_map([12])
    assert RankingUtility.placement_map([12]) == {12: 1}
    assert RankingUtility.percentile_rank(12, cumulative, 1) == 100.0


def test_sort_column_mapping_covers_every_field():
    mapping = RankingUtility.get_sort_column_mapping()
    assert set(mapping) == set(SortField)
    assert mapping[SortField.SCORE] is Grading.score


def test_resolve_sort_field_and_order():
    assert RankingUtility.resolve_sort_field('z_value') is SortField.Z_VALUE
    assert RankingUtility.resolve_sort_field(SortField.SCORE) is SortField.SCORE
    assert RankingUtility.resolve_sort_order('asc') is SortOrder.ASC

    with pytest.raises(ValidationFailure):
        RankingUtility.resolve_sort_field('password')
    with pytest.raises(ValidationFailure):
        RankingUtility.resolve_sort_order('sideways')
