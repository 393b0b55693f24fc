import pytest

from flowmind.domain.models.belief import Belief


@pytest.mark.parametrize("pos,neg", [(0, 0), (1, 1), (0, 50), (50, 0), (3.5, 0.25)])
def test_score_is_strictly_between_zero_and_one(pos, neg):
    assert 0 < Belief(pos=pos, neg=neg).score() < 1


def test_score_monotonic_in_evidence():
    base = Belief(pos=2, neg=2).score()
    assert Belief(pos=3, neg=2).score() > base
    assert Belief(pos=2, neg=3).score() < base


def test_update_counts_outcomes():
    belief = Belief()
    belief.update(True)
    belief.update(False)
    belief.update(False)
    assert (belief.pos, belief.neg) == (2.0, 3.0)


def test_default_and_trusted_scores():
    assert Belief().score() == pytest.approx(0.5)
    assert Belief.trusted().score() == pytest.approx(2 / 3)


def test_negative_counts_rejected():
    with pytest.raises(ValueError):
        Belief(pos=-1, neg=0)
