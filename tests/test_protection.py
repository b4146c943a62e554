"""Tests for the protected point set."""

import pytest

from py_thin.core.exceptions import ConfigurationError, UnknownPointError
from py_thin.core.population import InputPopulation
from py_thin.core.protection import ProtectedSet


@pytest.fixture
def population():
    return InputPopulation((i, (float(i), 0.0)) for i in range(1, 7))


class TestProtectedSet:
    """Test membership and inversion."""

    def test_empty_protects_nothing(self):
        protected = ProtectedSet.empty()
        assert len(protected) == 0
        assert not protected.is_protected(1)

    def test_keys_sorted_and_deduplicated(self):
        protected = ProtectedSet([5, 2, 9, 2])
        assert protected.keys == (2, 5, 9)

    def test_membership(self):
        protected = ProtectedSet([2, 4])
        assert protected.is_protected(2)
        assert protected.is_protected(4)
        assert not protected.is_protected(3)
        assert 4 in protected

    def test_inverted_membership(self):
        protected = ProtectedSet([2, 4], invert=True)
        assert not protected.is_protected(2)
        assert not protected.is_protected(4)
        assert protected.is_protected(1)
        assert protected.is_protected(3)
        assert protected.is_selected(2)


class TestFromPredicate:
    """Test building the protected set from a selection predicate."""

    def test_no_predicate(self, population):
        protected = ProtectedSet.from_predicate(population, None, lambda p: [1])
        assert len(protected) == 0

    def test_blank_predicate_counts_as_none(self, population):
        protected = ProtectedSet.from_predicate(population, "   ", lambda p: [1])
        assert len(protected) == 0

    def test_invert_without_predicate_rejected(self, population):
        with pytest.raises(ConfigurationError):
            ProtectedSet.from_predicate(population, None, lambda p: [], invert=True)

    def test_predicate_evaluated_once(self, population):
        calls = []

        def evaluate(predicate):
            calls.append(predicate)
            return [3, 1]

        protected = ProtectedSet.from_predicate(population, "kind == 'well'", evaluate)
        assert calls == ["kind == 'well'"]
        assert protected.keys == (1, 3)

    def test_zero_matches_is_not_an_error(self, population):
        protected = ProtectedSet.from_predicate(population, "kind == 'none'", lambda p: [])
        assert len(protected) == 0
        assert not any(protected.is_protected(k) for k in population)

    def test_unknown_ids_rejected(self, population):
        with pytest.raises(UnknownPointError):
            ProtectedSet.from_predicate(population, "x", lambda p: [1, 99])

    def test_predicate_without_evaluator_rejected(self, population):
        with pytest.raises(ConfigurationError):
            ProtectedSet.from_predicate(population, "x > 1", None)
