import unittest

from automaton import (
    LAMBDA,
    AutomatonDescriptor,
    Classification,
    MalformedAutomatonError,
    RelationBuilder,
    Transition,
    TransitionRelation,
)

DFA_RECORDS = [
    ("s0", "a", "s0"),
    ("s0", "b", "s1"),
    ("s1", "a", "s1"),
    ("s1", "b", "s2"),
    ("s2", "a", "s2"),
    ("s2", "b", "s2"),
]


class TestRelationBuilder(unittest.TestCase):
    def test_consuming_before_lambda(self):
        builder = RelationBuilder()
        builder.insert("s0", LAMBDA, "s3")
        builder.insert("s0", "a", "s1")
        builder.insert("s0", LAMBDA, "s4")
        builder.insert("s0", "b", "s2")
        relation = builder.build()

        self.assertEqual(
            relation.transitions_from("s0"),
            (
                Transition("a", "s1"),
                Transition("b", "s2"),
                Transition(LAMBDA, "s3"),
                Transition(LAMBDA, "s4"),
            ),
        )

    def test_dead_end_state_has_no_transitions(self):
        relation = TransitionRelation.from_records(DFA_RECORDS)
        self.assertEqual(relation.transitions_from("nowhere"), ())
        self.assertNotIn("nowhere", relation)

    def test_empty_label_is_rejected(self):
        builder = RelationBuilder()
        with self.assertRaises(MalformedAutomatonError):
            builder.insert("s0", "", "s1")

    def test_built_relation_is_a_snapshot(self):
        builder = RelationBuilder()
        builder.insert("s0", "a", "s1")
        relation = builder.build()
        builder.insert("s0", "a", "s2")

        self.assertEqual(relation.transitions_from("s0"), (Transition("a", "s1"),))
        self.assertIs(relation.classify(), Classification.DFA)
        self.assertIs(builder.classify(), Classification.NFA)


class TestClassification(unittest.TestCase):
    def test_dfa(self):
        relation = TransitionRelation.from_records(DFA_RECORDS)
        self.assertIs(relation.classify(), Classification.DFA)
        self.assertTrue(relation.is_deterministic)

    def test_lambda_makes_nfa(self):
        relation = TransitionRelation.from_records(DFA_RECORDS + [("s2", LAMBDA, "s0")])
        self.assertIs(relation.classify(), Classification.NFA)

    def test_duplicate_label_makes_nfa(self):
        relation = TransitionRelation.from_records(DFA_RECORDS + [("s1", "a", "s0")])
        self.assertIs(relation.classify(), Classification.NFA)

    def test_same_label_on_different_states_is_dfa(self):
        relation = TransitionRelation.from_records(
            [("s0", "a", "s1"), ("s1", "a", "s0")]
        )
        self.assertIs(relation.classify(), Classification.DFA)

    def test_verdict_is_independent_of_insertion_order(self):
        nfa_records = DFA_RECORDS + [("s1", "b", "s0"), ("s0", LAMBDA, "s2")]
        for records in (DFA_RECORDS, nfa_records):
            forward = TransitionRelation.from_records(records)
            backward = TransitionRelation.from_records(list(reversed(records)))
            self.assertIs(forward.classify(), backward.classify())

    def test_incremental_verdict(self):
        builder = RelationBuilder()
        builder.insert("s0", "a", "s0")
        self.assertIs(builder.classify(), Classification.DFA)
        builder.insert("s0", "a", "s1")
        self.assertIs(builder.classify(), Classification.NFA)


class TestAutomatonDescriptor(unittest.TestCase):
    def setUp(self):
        self.relation = TransitionRelation.from_records(DFA_RECORDS)

    def test_valid_descriptor(self):
        descriptor = AutomatonDescriptor("s0", {"s2"}, self.relation)
        self.assertEqual(descriptor.finals, frozenset({"s2"}))
        self.assertIs(descriptor.classification, Classification.DFA)
        self.assertEqual(descriptor.states, frozenset({"s0", "s1", "s2"}))

    def test_initial_must_be_a_source(self):
        with self.assertRaises(MalformedAutomatonError):
            AutomatonDescriptor("s9", {"s2"}, self.relation)

    def test_finals_must_not_be_empty(self):
        with self.assertRaises(MalformedAutomatonError):
            AutomatonDescriptor("s0", set(), self.relation)

    def test_initial_required(self):
        with self.assertRaises(MalformedAutomatonError):
            AutomatonDescriptor("", {"s2"}, self.relation)

    def test_no_transitions_is_allowed(self):
        descriptor = AutomatonDescriptor("s0", {"s0"})
        self.assertEqual(len(descriptor.relation), 0)
        self.assertIs(descriptor.classification, Classification.DFA)

    def test_errors_are_value_errors(self):
        self.assertTrue(issubclass(MalformedAutomatonError, ValueError))


if __name__ == "__main__":
    unittest.main()
