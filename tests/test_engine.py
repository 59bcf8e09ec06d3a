"""Tests for the calculator state machine"""

import pytest

import engine
from engine import CalculatorEngine, compute, compute_percent
from formatting import ERROR_MARKER, parse_number
from history import History
from conftest import press


def assert_at_rest(calc):
    """Idle engine: accumulator mirrors the display"""
    assert calc.pending_op is None
    assert not calc.is_typing
    assert calc.accumulator == parse_number(calc.display)


class TestCompute:
    def test_basic(self):
        assert compute(2, "add", 3) == 5
        assert compute(2, "sub", 3) == -1
        assert compute(2, "mul", 3) == 6
        assert compute(3, "div", 2) == 1.5
        assert compute(2, "pow", 10) == 1024

    def test_divide_by_zero_is_infinite(self):
        assert compute(8, "div", 0) == float("inf")

    def test_power_domain_errors_are_not_finite(self):
        assert compute(0, "pow", -1) != compute(0, "pow", -1)  # nan
        assert compute(10, "pow", 400) == float("inf")

    def test_percent(self):
        assert compute_percent(200, "add", 10) == 220
        assert compute_percent(200, "sub", 10) == 180
        assert compute_percent(200, "mul", 10) == pytest.approx(20)
        assert compute_percent(200, "div", 10) == pytest.approx(2000)
        assert compute_percent(200, "div", 0) == float("inf")
        assert compute_percent(16, "pow", 50) == pytest.approx(4)


class TestEntry:
    def test_initial_state(self, calc):
        assert calc.display == "0"
        assert calc.accumulator is None
        assert calc.pending_op is None
        assert calc.base == engine.BASE_DEC
        assert not calc.operation_performed

    def test_digits_concatenate(self, calc):
        press(calc, "1", "2", "3")
        assert calc.display == "123"
        assert calc.is_typing

    def test_no_leading_zeros(self, calc):
        press(calc, "0", "0", "7")
        assert calc.display == "7"

    def test_single_decimal_point(self, calc):
        press(calc, "1", ".", "5", ".", "2")
        assert calc.display == "1.52"

    def test_point_starts_zero(self, calc):
        press(calc, ".", "5")
        assert calc.display == "0.5"

    def test_delete(self, calc):
        press(calc, "1", "2", "DEL")
        assert calc.display == "1"
        press(calc, "DEL")
        assert calc.display == "0"

    def test_delete_clears_error_marker(self, calc):
        press(calc, "0", "1/x", "DEL")
        assert calc.display == "0"

    def test_delete_leaves_no_lone_minus(self, calc):
        press(calc, "5", "+/-", "DEL")
        assert calc.display == "0"
        assert calc.accumulator == 0

    def test_delete_keeps_pending_operation(self, calc):
        press(calc, "9", "+", "1", "2", "DEL", "=")
        assert calc.display == "10"

    def test_digit_after_result_starts_fresh(self, calc):
        press(calc, "2", "+", "3", "=", "7")
        assert calc.display == "7"
        assert calc.accumulator is None
        assert not calc.operation_performed

    def test_point_after_result_starts_fresh(self, calc):
        press(calc, "2", "+", "3", "=", ".", "5", "+", "1", "=")
        assert calc.display == "1.5"

    def test_unknown_key_ignored(self, calc):
        press(calc, "4", "sin")
        assert calc.display == "4"


class TestBinaryOperations:
    def test_simple_addition(self, calc):
        press(calc, "7", "+", "3", "=")
        assert calc.display == "10"
        assert calc.history[0] == "[14:32:08] 7 + 3 = 10"
        assert_at_rest(calc)

    def test_chained_operators_fold_left_to_right(self, calc):
        press(calc, "2", "+", "3", "+")
        assert calc.display == "5"
        press(calc, "4", "=")
        assert calc.display == "9"

    def test_no_precedence(self, calc):
        press(calc, "2", "+", "3", "×", "4", "=")
        assert calc.display == "20"

    def test_operator_replaces_pending_operator(self, calc):
        press(calc, "6", "+", "−", "2", "=")
        assert calc.display == "4"

    def test_operator_after_result_uses_result(self, calc):
        press(calc, "2", "×", "5", "=", "÷", "4", "=")
        assert calc.display == "2.5"

    def test_power(self, calc):
        press(calc, "2", "xʸ", "8", "=")
        assert calc.display == "256"
        assert calc.history[0].endswith("2 ^ 8 = 256")

    def test_equals_without_operator_is_noop(self, calc):
        press(calc, "5", "=")
        assert calc.display == "5"
        assert len(calc.history) == 0

    def test_equals_uses_display_when_no_rhs_typed(self, calc):
        press(calc, "4", "×", "=")
        assert calc.display == "16"

    def test_pending_symbol(self, calc):
        press(calc, "4", "÷")
        assert calc.pending_symbol == "÷"
        press(calc, "2", "=")
        assert calc.pending_symbol == ""

    def test_division_by_zero(self, calc):
        press(calc, "8", "÷", "0", "=")
        assert calc.display == ERROR_MARKER
        assert calc.accumulator is None
        assert calc.pending_op is None
        assert calc.history[0].endswith("= " + ERROR_MARKER)
        assert calc.history[0] == "[14:32:08] 8 ÷ 0 = Error"

    def test_usable_after_division_by_zero(self, calc):
        press(calc, "8", "÷", "0", "=", "3", "+", "4", "=")
        assert calc.display == "7"

    def test_chained_division_by_zero(self, calc):
        press(calc, "8", "÷", "0", "+")
        assert calc.display == ERROR_MARKER
        assert calc.accumulator is None
        assert calc.pending_op is None
        assert calc.history[0] == "[14:32:08] 8 ÷ 0 = Error"

    def test_chained_power_overflow(self, calc):
        press(calc, "1", "0", "xʸ", "4", "0", "0", "×")
        assert calc.display == ERROR_MARKER
        assert calc.accumulator is None
        assert calc.history[0] == "[14:32:08] 10 ^ 400 = Error"
        press(calc, "6", "+", "1", "=")
        assert calc.display == "7"

    def test_fractional_result(self, calc):
        press(calc, "1", "÷", "3", "=")
        assert calc.display == "0.33333333"
        assert calc.accumulator == pytest.approx(1 / 3)


class TestPercent:
    def test_percent_in_addition(self, calc):
        press(calc, "2", "0", "0", "+", "1", "0", "%")
        assert calc.display == "220"
        press(calc, "=")
        assert calc.display == "220"
        assert calc.history[0] == "[14:32:08] 200 + 10% = 220"

    def test_percent_in_subtraction(self, calc):
        press(calc, "5", "0", "−", "1", "0", "%")
        assert calc.display == "45"

    def test_percent_in_multiplication(self, calc):
        press(calc, "5", "0", "×", "2", "0", "%")
        assert calc.display == "10"

    def test_percent_flag_reset_after_evaluation(self, calc):
        press(calc, "2", "0", "0", "+", "1", "0", "%", "+", "5", "=")
        assert calc.display == "225"
        assert "%" not in calc.history[0]

    def test_percent_alone_divides_by_100(self, calc):
        press(calc, "5", "0", "%")
        assert calc.display == "0.5"
        assert calc.history[0] == "[14:32:08] % 50 = 0.5"
        assert_at_rest(calc)


class TestUnaryOperations:
    def test_sqrt(self, calc):
        press(calc, "8", "1", "√")
        assert calc.display == "9"
        assert calc.history[0] == "[14:32:08] √ 81 = 9"
        assert_at_rest(calc)

    def test_sqrt_negative_is_domain_error(self, calc):
        press(calc, "5", "+/-")
        assert calc.display == "-5"
        assert calc.accumulator == -5
        press(calc, "√")
        assert calc.display == ERROR_MARKER
        assert calc.accumulator == -5
        assert calc.history[0] == "[14:32:08] √ -5 = Error"

    def test_reciprocal(self, calc):
        press(calc, "4", "1/x")
        assert calc.display == "0.25"
        assert_at_rest(calc)

    def test_reciprocal_of_zero(self, calc):
        press(calc, "0", "1/x")
        assert calc.display == ERROR_MARKER
        assert calc.history[0].endswith("= Error")

    def test_reciprocal_overflow_is_domain_error(self, calc):
        press(calc, "0", ".", *(["0"] * 309), "1", "1/x")
        assert calc.display == ERROR_MARKER
        assert calc.history[0] == "[14:32:08] 1/x 0 = Error"
        assert "inf" not in calc.history.as_text()

    def test_toggle_sign(self, calc):
        press(calc, "1", "2", "+/-")
        assert calc.display == "-12"
        assert_at_rest(calc)
        press(calc, "+/-")
        assert calc.display == "12"

    def test_unary_on_right_operand_keeps_pending(self, calc):
        press(calc, "1", "0", "+", "9", "√")
        assert calc.display == "3"
        assert calc.accumulator == 10
        assert calc.pending_op == "add"
        press(calc, "=")
        assert calc.display == "13"

    def test_unary_after_result_then_operator(self, calc):
        press(calc, "3", "×", "3", "=", "√", "+", "1", "=")
        assert calc.display == "4"

    def test_digit_after_domain_error_starts_fresh(self, calc):
        press(calc, "5", "+/-", "√", "4")
        assert calc.display == "4"
        assert calc.accumulator is None

    def test_operation_performed_flag(self, calc):
        press(calc, "9")
        assert not calc.operation_performed
        press(calc, "√")
        assert calc.operation_performed
        press(calc, "AC")
        assert not calc.operation_performed


class TestBaseConversion:
    def test_binary_round_trip(self, calc):
        press(calc, "2", "5", "BIN")
        assert calc.display == "11001"
        assert calc.base == engine.BASE_BIN
        press(calc, "DEC")
        assert calc.display == "25"
        assert calc.base == engine.BASE_DEC
        assert calc.history[1] == "[14:32:08] BIN 25 = 11001"
        assert calc.history[0] == "[14:32:08] DEC BIN 11001 = 25"

    def test_hex_uppercase(self, calc):
        press(calc, "2", "5", "5", "HEX")
        assert calc.display == "FF"
        assert calc.base == engine.BASE_HEX
        press(calc, "DEC")
        assert calc.display == "255"

    def test_keys_ignored_outside_decimal(self, calc):
        press(calc, "1", "0", "BIN", "5", "+", "√", "DEL", "HEX", "=")
        assert calc.display == "1010"
        assert calc.base == engine.BASE_BIN

    def test_clear_allowed_outside_decimal(self, calc):
        press(calc, "1", "0", "HEX", "AC")
        assert calc.display == "0"
        assert calc.base == engine.BASE_DEC

    def test_dec_in_decimal_is_noop(self, calc):
        press(calc, "4", "2", "DEC")
        assert calc.display == "42"
        assert len(calc.history) == 0

    def test_fractional_value_rejected(self, calc):
        press(calc, "2", ".", "5", "BIN")
        assert calc.display == ERROR_MARKER
        assert calc.base == engine.BASE_DEC
        assert calc.history[0] == "[14:32:08] BIN 2.5 = Error"

    def test_negative_value_rejected(self, calc):
        press(calc, "3", "+/-", "HEX")
        assert calc.display == ERROR_MARKER
        assert calc.base == engine.BASE_DEC
        assert calc.history[0] == "[14:32:08] HEX -3 = Error"

    def test_pending_operation_survives_conversion(self, calc):
        press(calc, "1", "+", "2", "5", "BIN", "DEC", "=")
        assert calc.display == "26"

    def test_result_survives_conversion(self, calc):
        press(calc, "6", "×", "7", "=", "HEX")
        assert calc.display == "2A"
        press(calc, "DEC", "+", "8", "=")
        assert calc.display == "50"

    def test_to_decimal_accepts_sign_and_lowercase(self, calc):
        calc.base = engine.BASE_HEX
        calc.display = "-ff"
        calc.to_decimal()
        assert calc.display == "-255"
        assert calc.history[0] == "[14:32:08] DEC HEX -FF = -255"

    def test_to_decimal_rejects_bad_digits(self, calc):
        calc.base = engine.BASE_BIN
        calc.display = "102"
        calc.to_decimal()
        assert calc.display == ERROR_MARKER
        assert calc.base == engine.BASE_BIN
        assert calc.history[0] == "[14:32:08] DEC BIN 102 = Error"

    def test_zero_converts(self, calc):
        press(calc, "BIN")
        assert calc.display == "0"


class TestClear:
    def test_clear_resets_everything(self, calc):
        press(calc, "1", "2", "+", "3", "%")
        press(calc, "4", "+", "5", "HEX")
        press(calc, "AC")
        assert calc.display == "0"
        assert calc.accumulator is None
        assert calc.pending_op is None
        assert not calc.is_typing
        assert not calc.percent_pending
        assert calc.base == engine.BASE_DEC
        assert not calc.operation_performed

    def test_clear_keeps_history(self, calc):
        press(calc, "1", "+", "1", "=", "AC")
        assert len(calc.history) == 1


class TestRobustness:
    def test_parse_error_substitutes_zero(self, calc):
        calc.display = "garbage"
        press(calc, "+", "5", "=")
        assert calc.display == "5"

    def test_handle_key_never_raises(self, calc, monkeypatch):
        def boom():
            raise RuntimeError("boom")

        monkeypatch.setattr(calc, "apply_sqrt", boom)
        press(calc, "9", "√")
        assert calc.display == ERROR_MARKER
        press(calc, "AC", "2")
        assert calc.display == "2"

    @pytest.mark.parametrize("keys", [
        ["1", "2", "=", "√"],
        ["3", "+", "4", "=", "+/-"],
        ["5", "0", "%", "DEL"],
        ["9", "×", "9", "=", "DEL"],
        ["2", "5", "BIN", "DEC"],
        ["7", "1/x", "1/x"],
        ["2", "xʸ", "1", "0", "=", "HEX", "DEC"],
    ])
    def test_idle_accumulator_tracks_display(self, calc, keys):
        press(calc, *keys)
        assert_at_rest(calc)

    def test_shared_history(self):
        history = History()
        first = CalculatorEngine(history)
        second = CalculatorEngine(history)
        press(first, "1", "+", "1", "=")
        press(second, "4", "√")
        assert len(history) == 2
        assert history[0].endswith("√ 4 = 2")
