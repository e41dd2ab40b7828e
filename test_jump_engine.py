import unittest

import pytest

from function_registry import jump_registry
from jump_engine import JumpSession, JumpState
from jump_presets import build_preset_table
from table_errors import (
    EvaluationError,
    InvalidDirectionError,
    ParseError,
    PreconditionError,
)
from table_model import SEPARATOR, Table


def _grid():
    return Table([["a", "b", "c"], SEPARATOR, ["d", "", "f"]])


def _session(table=None, line=1, col=1, **kwargs):
    messages = []
    session = JumpSession(
        table if table is not None else _grid(),
        line=line,
        col=col,
        set_status=lambda msg, _ttl=None: messages.append(msg),
        **kwargs,
    )
    return session, messages


class JumpBasicsTests(unittest.TestCase):
    def test_regex_jump_skips_separator_rows(self):
        session, _ = _session()
        self.assertTrue(session.jump_next(1, "^d$"))
        self.assertEqual(session.position, (2, 1))

    def test_preset_jump(self):
        session, _ = _session()
        self.assertTrue(session.jump_next(1, "empty"))
        self.assertEqual(session.position, (2, 2))

    def test_condition_and_direction_persist(self):
        session, _ = _session()
        session.jump_next(1, "nonempty", "down")
        self.assertEqual(session.position, (2, 1))
        session.jump_next()
        self.assertEqual(session.position, (1, 2))

    def test_multiple_steps_and_previous(self):
        session, _ = _session()
        session.jump_next(2, "nonempty")
        self.assertEqual(session.position, (1, 3))
        session.jump_prev(1)
        self.assertEqual(session.position, (1, 2))

    def test_offset_regex(self):
        session, _ = _session()
        session.jump_next(1, ("^b$", 0, -1))
        self.assertEqual(session.position, (1, 3))

    def test_offset_outside_table_does_not_match(self):
        session, _ = _session()
        self.assertFalse(session.jump_next(1, (".", -5, 0)))

    def test_direct_coordinates(self):
        session, _ = _session(col=2)
        session.jump_next(1, (2, None))
        self.assertEqual(session.position, (2, 2))
        session.jump_next(1, (None, 0))
        self.assertEqual(session.position, (2, 3))
        session.jump_next(1, "top-left")
        self.assertEqual(session.position, (1, 1))

    def test_boolean_combinators(self):
        session, _ = _session()
        session.jump_next(1, ("or", "^c$", "^f$"))
        self.assertEqual(session.position, (1, 3))
        session.jump_next()
        self.assertEqual(session.position, (2, 3))
        session.jump_next(1, ("and", "nonempty", ("not", "^a$"), (None, 1)))
        self.assertEqual(session.position, (2, 1))

    def test_builtin_composite_preset(self):
        session, _ = _session(Table([["x", "", ""], ["", "y", ""]]))
        session.jump_next(1, "empty-after-content")
        self.assertEqual(session.position, (1, 2))
        session.jump_next()
        self.assertEqual(session.position, (2, 3))


class JumpCycleTests(unittest.TestCase):
    def test_no_match_restores_start_after_one_cycle(self):
        visits = []
        registry = jump_registry()
        registry.register("probe", 0, "count visits")(lambda env: visits.append(env.session.position))
        session, messages = _session(registry=registry, line=2, col=2)

        self.assertFalse(session.jump_next(1, ("expr", "probe()")))
        self.assertEqual(session.position, (2, 2))
        self.assertEqual(len(visits), 6)
        self.assertEqual(len(set(visits)), 6)
        self.assertEqual(messages, ["No matching cell"])

    def test_start_cell_can_match_after_full_cycle(self):
        session, _ = _session()
        self.assertTrue(session.jump_next(1, "^a$"))
        self.assertEqual(session.position, (1, 1))

    def test_failed_step_rolls_back_earlier_steps(self):
        session, _ = _session(Table([["x", "y"]]))
        self.assertFalse(session.jump_next(2, ("jmpseq", "^y$", "^z$")))
        self.assertEqual(session.position, (1, 1))
        self.assertEqual(session.state, {})


class JumpSequenceTests(unittest.TestCase):
    def test_sequence_cycles_between_conditions(self):
        session, _ = _session()
        cond = ("jmpseq", "^b$", "^f$")
        session.jump_next(1, cond)
        self.assertEqual(session.position, (1, 2))
        session.jump_next()
        self.assertEqual(session.position, (2, 3))
        session.jump_next()
        self.assertEqual(session.position, (1, 2))

    def test_previous_walks_the_sequence_backwards(self):
        session, _ = _session()
        cond = ("jmpseq", "^b$", "^f$")
        session.jump_next(2, cond)
        self.assertEqual(session.position, (2, 3))
        session.jump_prev()
        self.assertEqual(session.position, (1, 2))

    def test_sequence_state_survives_between_calls_and_resets(self):
        state = JumpState()
        session, _ = _session(state=state)
        session.jump_next(1, ("jmpseq", "^b$", "^f$"))
        self.assertEqual(list(state.values()), [0])
        session.reset()
        self.assertEqual(state, {})
        self.assertIsNone(session.condition)


class JumpSideEffectTests(unittest.TestCase):
    def test_setfield_mutates_matching_cell(self):
        session, _ = _session()
        session.jump_next(1, ("expr", "getfield() == '' and setfield('filled')"))
        self.assertEqual(session.position, (2, 2))
        self.assertEqual(session.table.cell(2, 2), "filled")

    def test_variables_persist_across_invocations(self):
        session, _ = _session()
        cond = ("expr", "setvar('last', getfield()) and incvar('hits') > 0")
        session.jump_next(1, cond)
        session.jump_next()
        self.assertEqual(session.state["last"], "c")
        self.assertEqual(session.state["hits"], 2)
        session.jump_next(1, ("expr", "checkvar('last', 'c') and matchfield('^d$')"))
        self.assertEqual(session.position, (2, 1))

    def test_flatten_inside_condition(self):
        session, _ = _session(Table([["a"], ["b"], ["c"]]), line=3)
        session.jump_next(1, ("expr", "line() == 1 and flatten(3)"), "down")
        self.assertEqual(session.position, (1, 1))
        self.assertEqual(session.table.rows, [["a b c"], [""], [""]])


class JumpTableOwnershipTests(unittest.TestCase):
    def test_caller_table_is_never_modified(self):
        table = Table([["a", "b"], ["c", "d"]])
        session = JumpSession(table)
        self.assertFalse(session.jump_next(1, ("expr", "setfield('X') and False")))
        self.assertEqual(table.rows, [["a", "b"], ["c", "d"]])
        self.assertEqual(session.table.rows, [["a", "b"], ["c", "d"]])

        session.jump_next(1, ("expr", "setfield('Y')"))
        self.assertEqual(session.table.cell(1, 2), "Y")
        self.assertEqual(table.cell(1, 2), "b")

    def test_failed_jump_discards_edits_made_during_the_cycle(self):
        session, _ = _session(Table([["a", "b"], ["c", "d"]]))
        session.jump_next(1, ("expr", "setfield('kept')"))
        self.assertFalse(session.jump_next(1, ("expr", "setfield('X') and False")))
        self.assertEqual(session.table.rows, [["a", "kept"], ["c", "d"]])

    def test_flatten_result_is_the_session_table(self):
        table = Table([["a"], ["b"]])
        session = JumpSession(table, line=2)
        session.jump_next(1, ("expr", "flatten(2)"), "down")
        self.assertEqual(session.table.rows, [["a b"], [""]])
        session.jump_next(1, ("expr", "setfield(getfield() + '!')"), "down")
        self.assertEqual(session.table.rows, [["a b"], ["!"]])
        self.assertEqual(table.rows, [["a"], ["b"]])


class JumpErrorTests(unittest.TestCase):
    def test_invalid_direction(self):
        session, _ = _session()
        with self.assertRaises(InvalidDirectionError):
            session.jump_next(1, "a", "diagonal")
        with self.assertRaises(InvalidDirectionError):
            JumpSession(_grid(), direction="inward")

    def test_outside_table(self):
        with self.assertRaises(PreconditionError):
            JumpSession(Table([SEPARATOR])).jump_next(1, "a")
        with self.assertRaises(PreconditionError):
            JumpSession(_grid(), line=9).jump_next(1, "a")
        with self.assertRaises(PreconditionError):
            JumpSession(_grid()).jump_next()

    def test_unbound_function_is_a_hard_error_and_rolls_back(self):
        session, _ = _session()
        with self.assertRaises(EvaluationError):
            session.jump_next(1, ("expr", "setfield('x', 0, 1) and nosuch()"))
        self.assertEqual(session.position, (1, 1))
        self.assertEqual(session.table.cell(1, 3), "c")

    def test_filter_functions_rejected_in_jump_conditions(self):
        session, _ = _session()
        with self.assertRaises(ParseError):
            session.jump_next(1, ("expr", "rowsum() > 0"))

    def test_malformed_conditions(self):
        session, _ = _session()
        for cond in [3.5, (), ("xor", "a"), ("not", "a", "b"), ("jmpseq",), "(["]:
            with self.assertRaises(ParseError):
                session.jump_next(1, cond)

    def test_preset_cycle_is_detected(self):
        presets = build_preset_table()
        presets.update({"ping": "pong", "pong": "ping"})
        session, _ = _session(presets=presets)
        with self.assertRaises(ParseError):
            session.jump_next(1, "ping")

    def test_jumps_cannot_nest(self):
        registry = jump_registry()
        registry.register("nested", 0, "jump from a condition")(
            lambda env: env.session.jump_next(1, "a")
        )
        session, _ = _session(registry=registry)
        with self.assertRaises(PreconditionError):
            session.jump_next(1, ("expr", "nested()"))


@pytest.mark.parametrize("steps", [1, 2, 5])
def test_jump_without_match_terminates(steps):
    session = JumpSession(Table([["a", "b"], ["c", "d"]]))
    assert session.jump_next(steps, "zzz") is False
    assert session.position == (1, 1)


if __name__ == "__main__":
    unittest.main()
