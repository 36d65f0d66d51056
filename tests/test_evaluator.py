"""
amlang - Evaluator tests
"""

import sys
import os
import math
import unittest

# Allow running from project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from amlang.lexer import tokenize
from amlang.parser import parse_expression, parse_algorithm_definition
from amlang.ast_nodes import AlgorithmDef, NumberNode
from amlang.evaluator import (
    Env, EvalError, Registry, evaluate, format_value, run_algorithm
)


def define_(source: str) -> AlgorithmDef:
    return parse_algorithm_definition(tokenize(source), source)


def registry_(*definitions: str) -> Registry:
    return Registry(define_(src) for src in definitions)


def eval_(source: str, *definitions: str, env=None):
    expr = parse_expression(tokenize(source), source)
    return evaluate(expr, registry_(*definitions), env)


SIGN = "@Sign(x) = [x>0 -> 1; x<0 -> -1; _ -> 0]"


class TestArithmetic(unittest.TestCase):

    def test_precedence(self):
        self.assertEqual(eval_("1 + 2 * 3"), 7.0)

    def test_power_right_associative(self):
        self.assertEqual(eval_("2 ^ 3 ^ 2"), 512.0)

    def test_negated_base_is_squared(self):
        self.assertEqual(eval_("-2 ^ 2"), 4.0)

    def test_results_are_floats(self):
        value = eval_("7 - 2")
        self.assertIsInstance(value, float)
        self.assertNotIsInstance(value, bool)

    def test_division(self):
        self.assertEqual(eval_("7 / 2"), 3.5)

    def test_division_by_zero(self):
        self.assertEqual(eval_("1 / 0"), math.inf)
        self.assertEqual(eval_("-1 / 0"), -math.inf)
        self.assertTrue(math.isnan(eval_("0 / 0")))

    def test_remainder_is_fmod(self):
        self.assertEqual(eval_("7 % 3"), 1.0)
        self.assertEqual(eval_("-7 % 3"), -1.0)
        self.assertEqual(eval_("7.5 % 2"), 1.5)
        self.assertTrue(math.isnan(eval_("5 % 0")))

    def test_real_power(self):
        self.assertAlmostEqual(eval_("2 ^ 0.5"), math.sqrt(2))
        self.assertEqual(eval_("2 ^ -1"), 0.5)
        self.assertTrue(math.isnan(eval_("(-8) ^ (1/3)")))
        self.assertEqual(eval_("0 ^ -1"), math.inf)
        self.assertEqual(eval_("10 ^ 400"), math.inf)
        self.assertEqual(eval_("(-10) ^ 401"), -math.inf)

    def test_builtins(self):
        self.assertEqual(eval_("sqrt(16)"), 4.0)
        self.assertEqual(eval_("abs(-3)"), 3.0)
        self.assertTrue(math.isnan(eval_("sqrt(-1)")))

    def test_constants(self):
        self.assertEqual(eval_("inf"), math.inf)
        self.assertTrue(math.isnan(eval_("NaN")))
        self.assertIs(eval_("-inf < 0"), True)


class TestComparisonAndLogic(unittest.TestCase):

    def test_comparisons(self):
        self.assertIs(eval_("1 < 2"), True)
        self.assertIs(eval_("2 <= 2"), True)
        self.assertIs(eval_("1 > 2"), False)
        self.assertIs(eval_("3 >= 4"), False)
        self.assertIs(eval_("2 == 2"), True)
        self.assertIs(eval_("2 = 2"), True)
        self.assertIs(eval_("2 != 2"), False)

    def test_nan_equals_nan(self):
        self.assertIs(eval_("NaN == NaN"), True)
        self.assertIs(eval_("NaN != NaN"), False)
        self.assertIs(eval_("NaN == 1"), False)
        self.assertIs(eval_("NaN < 1"), False)

    def test_logic(self):
        self.assertIs(eval_("true && false"), False)
        self.assertIs(eval_("false || true"), True)
        self.assertIs(eval_("!false"), True)
        self.assertIs(eval_("1 < 2 && 2 < 3"), True)

    def test_both_operands_always_evaluated(self):
        with self.assertRaises(EvalError) as ctx:
            eval_("true || missing")
        self.assertEqual(ctx.exception.message, "unknown identifier: missing")


class TestKindChecks(unittest.TestCase):

    def test_bool_in_arithmetic(self):
        with self.assertRaises(EvalError) as ctx:
            eval_("true + 1")
        self.assertEqual(ctx.exception.message, "expected number, got bool true")

    def test_number_in_logic(self):
        with self.assertRaises(EvalError) as ctx:
            eval_("1 && true")
        self.assertEqual(ctx.exception.message, "expected bool, got number 1")

    def test_negating_bool(self):
        with self.assertRaises(EvalError):
            eval_("-true")

    def test_not_on_number(self):
        with self.assertRaises(EvalError):
            eval_("!1")

    def test_comparing_bools(self):
        with self.assertRaises(EvalError):
            eval_("true == true")

    def test_case_condition_must_be_bool(self):
        with self.assertRaises(EvalError) as ctx:
            eval_("[1 -> 2; _ -> 3]")
        self.assertEqual(ctx.exception.message, "expected bool, got number 1")

    def test_builtin_rejects_bool(self):
        with self.assertRaises(EvalError):
            eval_("sqrt(true)")


class TestCaseEvaluation(unittest.TestCase):

    def test_sign(self):
        self.assertEqual(eval_("Sign(5)", SIGN), 1.0)
        self.assertEqual(eval_("Sign(-3)", SIGN), -1.0)
        self.assertEqual(eval_("Sign(0)", SIGN), 0.0)

    def test_first_match_wins(self):
        self.assertEqual(eval_("[true -> 1; true -> 2; _ -> 3]"), 1.0)

    def test_later_arms_not_evaluated(self):
        self.assertEqual(eval_("[true -> 1; missing -> 2; _ -> 3]"), 1.0)

    def test_default(self):
        self.assertEqual(eval_("[false -> 1; _ -> 3]"), 3.0)

    def test_ternary_matches_explicit_arms(self):
        sugared = "@T(x) = [x>0 ? 1 | -1; _ -> 0]"
        explicit = "@U(x) = [x>0 -> 1; !(x>0) -> -1; _ -> 0]"
        for x in ("-2.5", "-1", "0", "0.5", "3", "inf", "-inf", "NaN"):
            with self.subTest(x=x):
                self.assertEqual(
                    eval_(f"T({x})", sugared, explicit),
                    eval_(f"U({x})", sugared, explicit),
                )

    def test_recursion(self):
        fact = "@Fact(n) = [n <= 1 -> 1; _ -> n * Fact(n - 1)]"
        self.assertEqual(eval_("Fact(10)", fact), 3628800.0)


class TestPipes(unittest.TestCase):

    def test_pipe_through_builtins(self):
        self.assertEqual(eval_("4 >> sqrt >> sqrt"), 1.4142135623730951)
        self.assertEqual(eval_("4 >> sqrt >> sqrt"), eval_("sqrt(sqrt(4))"))

    def test_previous_value_is_first_argument(self):
        sub = "@Sub(a, b) = a - b"
        self.assertEqual(eval_("10 >> Sub(3)", sub), 7.0)
        self.assertEqual(eval_("10 >> @Sub(3)", sub), 7.0)
        self.assertEqual(eval_("-10 >> Sub(3) >> abs", sub), 13.0)

    def test_bare_algorithm_step(self):
        self.assertEqual(eval_("-5 >> @Sign", SIGN), -1.0)
        self.assertEqual(eval_("-5 >> Sign", SIGN), -1.0)

    def test_step_must_be_call_or_name(self):
        with self.assertRaises(EvalError) as ctx:
            eval_("1 >> 2")
        self.assertEqual(ctx.exception.message, "pipeline step must be a call or name, got NumberNode")

    def test_pipe_inside_definition(self):
        hyp = "@Hyp(a, b) = a^2 + b^2 >> sqrt"
        self.assertEqual(eval_("Hyp(3, 4)", hyp), 5.0)


class TestCalls(unittest.TestCase):

    def test_arity_mismatch(self):
        with self.assertRaises(EvalError) as ctx:
            eval_("Add(1)", "@Add(a, b) = a + b")
        self.assertEqual(ctx.exception.message, "argument count mismatch: expected 2, got 1")

    def test_builtin_arity(self):
        with self.assertRaises(EvalError) as ctx:
            eval_("sqrt(1, 2)")
        self.assertEqual(ctx.exception.message, "sqrt expects 1 arg, got 2")

    def test_unknown_identifier(self):
        with self.assertRaises(EvalError) as ctx:
            eval_("y + 1")
        self.assertEqual(ctx.exception.message, "unknown identifier: y")

    def test_unknown_function(self):
        with self.assertRaises(EvalError) as ctx:
            eval_("foo(1)")
        self.assertEqual(ctx.exception.message, "unknown function: foo")

    def test_unknown_algorithm(self):
        with self.assertRaises(EvalError) as ctx:
            eval_("@Foo(1)")
        self.assertEqual(ctx.exception.message, "unknown algorithm: Foo")

    def test_algorithm_shadows_builtin(self):
        self.assertEqual(eval_("sqrt(4)", "@sqrt(x) = x + 1"), 5.0)

    def test_callee_cannot_see_caller_bindings(self):
        with self.assertRaises(EvalError) as ctx:
            eval_("Outer(5)", "@Outer(x) = Inner(1)", "@Inner(y) = x + y")
        self.assertEqual(ctx.exception.message, "unknown identifier: x")

    def test_constants_visible_in_frames(self):
        self.assertEqual(eval_("F(1)", "@F(x) = [x < inf -> x; _ -> 0]"), 1.0)

    def test_constants_win_over_parameters(self):
        self.assertEqual(eval_("F(1)", "@F(inf) = inf"), math.inf)

    def test_explicit_env(self):
        env = Env.with_params(["x"], [2.0])
        self.assertEqual(eval_("x * 10", env=env), 20.0)

    def test_run_algorithm(self):
        registry = registry_("@Add(a, b) = a + b")
        self.assertEqual(run_algorithm(registry, "Add", [1, 4]), 5.0)
        with self.assertRaises(EvalError):
            run_algorithm(registry, "Nope", [])


class TestDepthGuard(unittest.TestCase):

    def test_runaway_recursion_is_reported(self):
        with self.assertRaises(EvalError) as ctx:
            eval_("Loop(1)", "@Loop(x) = Loop(x)")
        self.assertEqual(ctx.exception.message, "maximum evaluation depth exceeded")

    def test_configurable_limit(self):
        registry = registry_("@Fact(n) = [n <= 1 -> 1; _ -> n * Fact(n - 1)]")
        expr = parse_expression(tokenize("Fact(20)"), "Fact(20)")
        with self.assertRaises(EvalError):
            evaluate(expr, registry, max_depth=10)

    def test_deep_recursion_within_default_limit(self):
        fact = "@Fact(n) = [n <= 1 -> 1; _ -> n * Fact(n - 1)]"
        self.assertAlmostEqual(eval_("Fact(100)", fact) / math.factorial(100), 1.0, places=12)
        total = "@Sum(n) = [n <= 0 -> 0; _ -> n + Sum(n - 1)]"
        self.assertEqual(eval_("Sum(900)", total), 405450.0)

    def test_limit_counts_algorithm_calls(self):
        registry = registry_("@Add(a, b) = a + b")
        source = "Add(1, Add(2, Add(3, 4))) >> abs >> sqrt"
        expr = parse_expression(tokenize(source), source)
        self.assertEqual(evaluate(expr, registry, max_depth=1), math.sqrt(10))

    def test_limit_is_exact(self):
        registry = registry_("@Down(n) = [n <= 0 -> 0; _ -> Down(n - 1)]")
        ok = parse_expression(tokenize("Down(4)"), "Down(4)")
        self.assertEqual(evaluate(ok, registry, max_depth=5), 0.0)
        too_deep = parse_expression(tokenize("Down(5)"), "Down(5)")
        with self.assertRaises(EvalError):
            evaluate(too_deep, registry, max_depth=5)


class TestRegistry(unittest.TestCase):

    def test_redefinition_replaces(self):
        registry = Registry()
        registry.upsert(define_("@F(x) = x + 1"))
        registry.upsert(define_("@F(x) = x * 2"))
        expr = parse_expression(tokenize("F(3)"), "F(3)")
        self.assertEqual(evaluate(expr, registry), 6.0)
        self.assertEqual(registry.names(), ["F"])

    def test_upsert_keeps_position(self):
        registry = registry_("@A() = 1", "@B() = 2")
        self.assertTrue(registry.upsert(define_("@A() = 3")))
        self.assertEqual(registry.names(), ["A", "B"])
        self.assertEqual(registry.get("A").body, NumberNode(value=3.0))

    def test_version_tracks_mutations(self):
        registry = Registry()
        self.assertEqual(registry.version, 0)
        registry.upsert(define_("@A() = 1"))
        registry.upsert(define_("@A() = 2"))
        self.assertEqual(registry.version, 2)
        registry.clear()
        self.assertEqual(registry.version, 3)
        self.assertEqual(len(registry), 0)

    def test_snapshot_is_read_only(self):
        registry = registry_("@A() = 1")
        snapshot = registry.snapshot()
        with self.assertRaises(TypeError):
            snapshot["B"] = define_("@B() = 2")
        registry.clear()
        self.assertIn("A", snapshot)

    def test_evaluation_leaves_registry_untouched(self):
        registry = registry_(SIGN)
        version = registry.version
        expr = parse_expression(tokenize("Sign(2)"), "Sign(2)")
        evaluate(expr, registry)
        self.assertEqual(registry.version, version)

    def test_evaluation_is_deterministic(self):
        registry = registry_(SIGN, "@Hyp(a, b) = a^2 + b^2 >> sqrt")
        expr = parse_expression(tokenize("Hyp(1.5, 2.25) / 3 + Sign(-1)"), "Hyp(1.5, 2.25) / 3 + Sign(-1)")
        first = evaluate(expr, registry)
        second = evaluate(expr, registry)
        self.assertEqual(first.hex(), second.hex())

    def test_base_env_has_constants(self):
        env = Env.base()
        self.assertIn("inf", env)
        self.assertIn("NaN", env)
        self.assertNotIn("x", env)


class TestFormatValue(unittest.TestCase):

    def test_numbers(self):
        self.assertEqual(format_value(5.0), "5")
        self.assertEqual(format_value(-3.0), "-3")
        self.assertEqual(format_value(1.5), "1.5")
        self.assertEqual(format_value(1e20), "1e+20")
        self.assertEqual(format_value(math.nan), "NaN")
        self.assertEqual(format_value(math.inf), "inf")
        self.assertEqual(format_value(-math.inf), "-inf")

    def test_bools(self):
        self.assertEqual(format_value(True), "true")
        self.assertEqual(format_value(False), "false")


if __name__ == "__main__":
    unittest.main(verbosity=2)
