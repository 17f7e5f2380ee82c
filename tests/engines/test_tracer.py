"""
Engine tracer tests -- fingerprints and trace records.
"""

from decimal import Decimal

from portal_engines.tracer import compute_input_fingerprint, traced_engine


@traced_engine("double", "2.1", fingerprint_fields=("values", "factor"))
def _double(values, factor=Decimal("2")):
    return [v * factor for v in values]


def _traces(captured_logs):
    return [r for r in captured_logs() if r["message"] == "PORTAL_ENGINE_TRACE"]


class TestFingerprint:
    def test_deterministic(self):
        args = {"values": [Decimal("1"), Decimal("2")], "factor": Decimal("3")}
        assert compute_input_fingerprint(("values", "factor"), args) == (
            compute_input_fingerprint(("values", "factor"), dict(args))
        )

    def test_dict_key_order_irrelevant(self):
        a = compute_input_fingerprint(("m",), {"m": {"x": 1, "y": 2}})
        b = compute_input_fingerprint(("m",), {"m": {"y": 2, "x": 1}})
        assert a == b

    def test_missing_field_is_null(self):
        assert compute_input_fingerprint(("gone",), {}) == compute_input_fingerprint(
            ("gone",), {"gone": None},
        )


class TestTracedEngine:
    def test_positional_and_keyword_calls_match(self, captured_logs):
        _double([Decimal("1")])
        _double(values=[Decimal("1")], factor=Decimal("2"))
        first, second = _traces(captured_logs)
        assert first["input_fingerprint"] == second["input_fingerprint"]

    def test_trace_fields(self, captured_logs):
        assert _double([Decimal("1"), Decimal("4")]) == [Decimal("2"), Decimal("8")]
        (trace,) = _traces(captured_logs)
        assert trace["engine_name"] == "double"
        assert trace["engine_version"] == "2.1"
        assert trace["result_count"] == 2
        assert trace["duration_ms"] >= 0
