"""
Tests for expression expansion.

These tests verify that the expander:
- Leaves trees without bound symbols untouched
- Substitutes only expression bindings, recursively
- Resolves substituted expressions in the scope that holds the binding
- Detects cycles and runaway nesting
- Never mutates its input
"""

import copy
import threading
from typing import Optional

import pytest

from conftest import AssertExpansion
from exprsplice.parser import parse_expression
from exprsplice.parser.ast_nodes import Arg, Compound, Opaque, Symbol, call
from exprsplice.parser.expander import (
    CycleError, DepthExceeded, ExpansionError, Expander, expand,
)
from exprsplice.scope import Binding, ExpressionValue, Frame, OpaqueValue, Scope


class TestPassThrough:
    """Nodes that must come back unchanged."""

    def test_opaque_only_tree_is_identity(self):
        expr = Compound(Opaque(len), [Opaque(1), Opaque(2.5), Arg("k", Opaque("three")),
                                      Compound(Opaque(max), [Opaque(None), Opaque(True)])])
        for scope in (Frame(), Frame({"k": Symbol("boom"), "max": Symbol("boom")})):
            result = expand(expr, scope)
            assert result == expr
            assert result is expr
        assert expand(Opaque([1, 2]), Frame()) == Opaque([1, 2])

    def test_opaque_payload_is_not_descended(self):
        hidden = Opaque(Symbol("a"))
        scope = Frame({"a": Symbol("b")})
        assert expand(hidden, scope) is hidden

    def test_unresolved_symbol_is_left_alone(self):
        AssertExpansion("Species == unknown").is_unchanged()

    def test_plain_data_binding_is_not_substituted(self):
        AssertExpansion("x").with_value("x", 42).is_unchanged()
        AssertExpansion("x + 1").with_value("x", parse_expression).is_unchanged()

    def test_untagged_literal_in_frame_is_data(self):
        scope = Frame({"x": Opaque(3)})
        assert expand(Symbol("x"), scope) == Symbol("x")

    def test_unchanged_tree_is_returned_as_is(self):
        expr = parse_expression("f(x, k = y + 1)[2]")
        assert expand(expr, Frame({"x": 1})) is expr


class TestSubstitution:

    def test_single_level(self):
        AssertExpansion("a") \
            .with_binding("a", 'Species == "virginica"') \
            .expands_to('Species == "virginica"')

    def test_recursive(self, iris_scope):
        result = expand(Symbol("d"), iris_scope)
        expected = call("&",
                        call("==", Symbol("Species"), "virginica"),
                        call(">", Symbol("Sepal.Width"), 3.6))
        assert result == expected

    def test_recursive_via_helper(self):
        AssertExpansion("d") \
            .with_binding("b", 'Species == "virginica"') \
            .with_binding("c", "Sepal.Width > 3.6") \
            .with_binding("d", "b & c") \
            .expands_to('(Species == "virginica") & (Sepal.Width > 3.6)')

    def test_symbol_at_any_depth(self):
        AssertExpansion("filter(df, !(a | z), n = max(a, 1))") \
            .with_binding("a", "x > 0") \
            .expands_to("filter(df, !((x > 0) | z), n = max(x > 0, 1))")

    def test_head_is_expanded(self):
        AssertExpansion("op(1, 2)") \
            .with_binding("op", "pick(ops)") \
            .expands_to("pick(ops)(1, 2)")

    def test_argument_names_and_order_preserved(self):
        scope = Frame({"v": call("g", Symbol("w"))})
        expr = Compound(Symbol("f"), [Arg("first", Symbol("v")), Arg(None, Opaque(1)),
                                      Arg("last", Symbol("v"))])
        result = expand(expr, scope)
        assert [a.name for a in result.args] == ["first", None, "last"]
        assert result.args[0].value == call("g", Symbol("w"))
        assert result.args[2].value == call("g", Symbol("w"))

    def test_same_symbol_twice_is_not_a_cycle(self):
        AssertExpansion("a + a") \
            .with_binding("a", "b * 2") \
            .with_binding("b", "y") \
            .expands_to("y * 2 + y * 2")

    def test_explicit_expression_binding_of_literal(self):
        scope = Frame({"limit": ExpressionValue(Opaque(10))})
        assert expand(parse_expression("x < limit"), scope) == call("<", Symbol("x"), 10)

    def test_data_binding_inside_substituted_expression(self):
        AssertExpansion("a") \
            .with_binding("a", "x > threshold") \
            .with_value("threshold", 3.6) \
            .expands_to("x > threshold")

    def test_unchanged_siblings_are_shared(self):
        expr = parse_expression("f(g(x), a)")
        result = expand(expr, Frame({"a": Symbol("b")}))
        assert result.args[0].value is expr.args[0].value


class TestScopeRelativeResolution:

    def test_outer_binding_uses_outer_scope(self):
        AssertExpansion("a") \
            .with_binding("a", "b + 1") \
            .with_binding("b", "outer") \
            .in_child_frame("call site") \
            .with_binding("b", "inner") \
            .expands_to("outer + 1")

    def test_inner_binding_sees_inner_then_outer(self):
        AssertExpansion("a") \
            .with_binding("b", "outer") \
            .with_binding("c", "c_outer") \
            .in_child_frame() \
            .with_binding("a", "b + c") \
            .with_binding("b", "inner") \
            .expands_to("inner + c_outer")

    def test_nearest_expression_binding_wins(self):
        AssertExpansion("a") \
            .with_binding("a", "outer") \
            .in_child_frame() \
            .with_binding("a", "inner") \
            .expands_to("inner")

    def test_inner_data_hides_outer_expression(self):
        AssertExpansion("a") \
            .with_binding("a", "outer") \
            .in_child_frame() \
            .with_value("a", 1) \
            .is_unchanged()


class TestCycles:

    def test_self_reference(self):
        error = AssertExpansion("a").with_binding("a", "a").raises(CycleError, name="a")
        assert error.chain == ["a", "a"]

    def test_self_reference_inside_compound(self):
        AssertExpansion("a").with_binding("a", "a + 1").raises(CycleError, name="a")

    def test_mutual_reference_names_closing_symbol(self):
        error = AssertExpansion("a") \
            .with_binding("a", "b") \
            .with_binding("b", "a") \
            .raises(CycleError, name="a")
        assert error.chain == ["a", "b", "a"]
        assert "a -> b -> a" in str(error)

    def test_cycle_reached_from_outside(self):
        error = AssertExpansion("f(d)") \
            .with_binding("d", "b") \
            .with_binding("b", "c") \
            .with_binding("c", "b") \
            .raises(CycleError, name="b")
        assert error.chain == ["d", "b", "c", "b"]

    def test_cycle_is_an_expansion_error(self):
        assert issubclass(CycleError, ExpansionError)
        assert issubclass(DepthExceeded, ExpansionError)

    def test_shadowed_name_is_still_a_cycle(self):
        # the inner a resolves at its own frame, so it finds itself again
        AssertExpansion("a") \
            .with_binding("a", "x") \
            .in_child_frame() \
            .with_binding("a", "a + 1") \
            .raises(CycleError, name="a")


class TestDepthLimit:

    def _chain(self, length: int) -> Frame:
        frame = Frame()
        for i in range(length):
            frame.bind(f"s{i}", ExpressionValue(Symbol(f"s{i + 1}")))
        return frame

    def test_long_acyclic_chain_is_rejected(self):
        with pytest.raises(DepthExceeded) as info:
            Expander(max_depth=50).expand(Symbol("s0"), self._chain(100))
        assert info.value.max_depth == 50
        assert info.value.name is not None
        assert "50" in str(info.value)

    def test_chain_within_limit_expands(self):
        assert Expander(max_depth=50).expand(Symbol("s0"), self._chain(20)) == Symbol("s20")

    def test_deep_tree_without_bindings(self):
        expr = Symbol("x")
        for _ in range(30):
            expr = call("f", expr)
        with pytest.raises(DepthExceeded) as info:
            Expander(max_depth=10).expand(expr, Frame())
        assert info.value.name is None

    def test_limit_beyond_interpreter_stack(self):
        with pytest.raises(DepthExceeded) as info:
            Expander(max_depth=5000).expand(Symbol("s0"), self._chain(3000))
        assert info.value.max_depth == 5000
        assert info.value.name is not None
        assert info.value.name.startswith("s")

    def test_deep_tree_beyond_interpreter_stack(self):
        expr = Symbol("x")
        for _ in range(5000):
            expr = call("f", expr)
        with pytest.raises(DepthExceeded) as info:
            Expander(max_depth=100000).expand(expr, Frame())
        assert info.value.name is None

    def test_max_depth_must_be_positive(self):
        with pytest.raises(ValueError):
            Expander(max_depth=0)


class TestNoMutation:

    def test_input_tree_is_unchanged(self, iris_scope):
        expr = parse_expression("d | (b & z)")
        before = copy.deepcopy(expr)
        result = expand(expr, iris_scope)
        assert expr == before
        assert result != expr

    def test_bound_expressions_are_unchanged(self, iris_scope):
        body = iris_scope.lookup("d").expression
        before = copy.deepcopy(body)
        expand(Symbol("d"), iris_scope)
        assert iris_scope.lookup("d").expression == before


class TestScopeErrors:

    def test_lookup_errors_propagate(self):
        class Broken(Scope):
            def lookup(self, name: str) -> Optional[Binding]:
                raise KeyError(name)

            def parent(self):
                return None

        with pytest.raises(KeyError):
            expand(Symbol("x"), Broken())


class TestConcurrency:

    def test_shared_expander_in_threads(self, iris_scope):
        expander = Expander()
        expected = expander.expand(Symbol("d"), iris_scope)
        results = []
        errors = []

        def worker():
            try:
                for _ in range(50):
                    results.append(expander.expand(Symbol("d"), iris_scope))
            except Exception as e:  # pragma: no cover - reported below
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(results) == 200
        assert all(r == expected for r in results)


class TestVerbose:

    def test_substitutions_are_logged(self, iris_scope, capsys):
        Expander(verbose=True).expand(Symbol("d"), iris_scope)
        err = capsys.readouterr().err
        assert "[exprsplice] expanding d" in err
        assert "expanding b" in err

    def test_quiet_by_default(self, iris_scope, capsys):
        Expander().expand(Symbol("d"), iris_scope)
        assert capsys.readouterr().err == ""
