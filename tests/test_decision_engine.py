"""Tests for the pure decision engine."""

from copilot.catalog.facets import FACET_DEFINITIONS, FacetKey, empty_assignment
from copilot.engine.decision_engine import EngineStatus, compute_next_state


def _assignment(**values):
    assignment = empty_assignment()
    for name, value in values.items():
        assignment[FacetKey(name)] = value
    return assignment


class TestFirstQuestion:
    def test_empty_assignment_asks_category(self):
        state = compute_next_state(empty_assignment())
        assert state.status == EngineStatus.QUESTION
        assert state.question.facet == FacetKey.CATEGORY
        assert state.final_products is None

    def test_first_question_offers_all_options(self):
        state = compute_next_state(empty_assignment())
        assert state.question.options == FACET_DEFINITIONS[FacetKey.CATEGORY].options
        assert state.question.question == FACET_DEFINITIONS[FacetKey.CATEGORY].question


class TestDeterminism:
    def test_same_assignment_same_result(self):
        assignment = _assignment(category="window", blind="yes")
        assert compute_next_state(assignment) == compute_next_state(dict(assignment))

    def test_input_not_mutated(self):
        assignment = _assignment(category="window")
        before = dict(assignment)
        compute_next_state(assignment)
        assert assignment == before


class TestQuestionWalk:
    def test_first_null_facet_is_asked_even_when_later_ones_filled(self):
        state = compute_next_state(_assignment(blind="no", panel_count="2"))
        assert state.question.facet == FacetKey.CATEGORY

    def test_motorization_skipped_without_blind(self):
        state = compute_next_state(_assignment(category="window", system="sliding", blind="no"))
        assert state.question.facet == FacetKey.MATERIAL

    def test_motorization_asked_with_blind(self):
        state = compute_next_state(_assignment(category="window", system="sliding", blind="yes"))
        assert state.question.facet == FacetKey.BLIND_MOTORIZATION

    def test_options_pruned_by_earlier_answers(self):
        state = compute_next_state(_assignment(category="window", system="sliding", blind="no"))
        assert [o.value for o in state.question.options] == ["glass", "glass-louver"]


class TestCompletion:
    def test_complete_assignment_returns_products(self):
        state = compute_next_state(_assignment(
            category="window", system="sliding", blind="no", material="glass", panel_count="2",
        ))
        assert state.status == EngineStatus.COMPLETE
        assert state.is_complete
        assert state.question is None
        assert [p.sku for p in state.final_products] == ["WSL-G2"]

    def test_stale_motorization_ignored_on_completion(self):
        state = compute_next_state(_assignment(
            category="window", system="sliding", blind="no", blind_motorization="manual",
            material="glass", panel_count="4",
        ))
        assert [p.sku for p in state.final_products] == ["WSL-G4"]


class TestNoMatch:
    def test_pending_facet_without_options(self):
        state = compute_next_state(_assignment(category="door", system="awning"))
        assert state.status == EngineStatus.NO_MATCH
        assert state.blocked_facet == FacetKey.BLIND
        assert state.question is None
        assert state.final_products is None

    def test_complete_but_impossible(self):
        state = compute_next_state(_assignment(
            category="door", system="hinged", blind="no", material="glass", panel_count="6",
        ))
        assert state.status == EngineStatus.NO_MATCH
        assert state.blocked_facet is None
        assert not state.is_complete
