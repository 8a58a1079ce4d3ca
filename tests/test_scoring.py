import pytest

from treeowners.scoring import DISTANCE, IS_REVIEWER, ScoreDimension, Scoring, Scorings


def test_combined_score_example():
    distance = Scoring(DISTANCE, max_value=100).put_value("x", 50)
    is_reviewer = Scoring(IS_REVIEWER).put_value("x", 0)
    assert distance.scoring("x") == pytest.approx(0.5)
    assert is_reviewer.scoring("x") == 0.0
    assert Scorings(distance, is_reviewer).total("x") == pytest.approx(0.5)


def test_best_value_is_kept():
    distance = Scoring(DISTANCE, max_value=10).put_value("x", 5).put_value("x", 2).put_value("x", 7)
    assert distance.best_value("x") == 2
    is_reviewer = Scoring(IS_REVIEWER).put_value("x", 1).put_value("x", 0)
    assert is_reviewer.best_value("x") == 1
    assert is_reviewer.weighted_scoring("x") == 2.0


def test_values_must_be_in_range():
    distance = Scoring(DISTANCE, max_value=10)
    with pytest.raises(ValueError):
        distance.put_value("x", 11)
    with pytest.raises(ValueError):
        distance.put_value("x", -1)


def test_max_value_is_fixed_or_given():
    with pytest.raises(ValueError):
        Scoring(DISTANCE)
    with pytest.raises(ValueError):
        Scoring(IS_REVIEWER, max_value=3)
    assert Scoring(DISTANCE, max_value=0).put_value("x", 0).scoring("x") == 1.0


def test_single_dimension_sort_requires_values():
    distance = Scoring(DISTANCE, max_value=10).put_value("far", 9).put_value("near", 1)
    assert distance.sort(["far", "near"]) == ["near", "far"]
    with pytest.raises(ValueError):
        distance.sort(["far", "unknown"])


def test_combined_sort_treats_missing_values_as_zero_and_is_stable():
    distance = Scoring(DISTANCE, max_value=10).put_value("a", 5)
    is_reviewer = Scoring(IS_REVIEWER).put_value("c", 1)
    scorings = Scorings(distance, is_reviewer)
    assert scorings.total("b") == 0.0
    assert scorings.sort(["b", "a", "d", "c"]) == ["c", "a", "b", "d"]

    with pytest.raises(ValueError):
        Scorings(distance, Scoring(DISTANCE, max_value=3))


def test_scorings_only_take_known_dimensions():
    custom = ScoreDimension("CUSTOM", weight=1, lower_is_better=False, max_value=1)
    with pytest.raises(ValueError):
        Scorings(Scoring(custom))
    with pytest.raises(ValueError):
        Scorings(Scoring(IS_REVIEWER), Scoring(IS_REVIEWER))
