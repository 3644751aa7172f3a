"""Tests for benchduel.bench.protocol: worker line encoding and decoding."""

from __future__ import annotations

import unittest

from benchduel.bench.protocol import (
    ProtocolError,
    decode_line,
    decode_output,
    encode_step,
    extract_errors,
    format_error_line,
    format_start_line,
    format_success_line,
    label_problem,
)
from benchduel.bench.results import MeasurementRecord


class TestEncodeStep(unittest.TestCase):
    def test_exact_line(self) -> None:
        rec = MeasurementRecord("1.General", "Inserting 10000 users", 0.04127, 5284613)
        self.assertEqual(
            encode_step(rec),
            "SLAVE_STEP:1.General - Inserting 10000 users - 41.27ms - 5284613B",
        )

    def test_zero_values(self) -> None:
        rec = MeasurementRecord("2.FS", "Optimize", 0.0, 0)
        self.assertEqual(encode_step(rec), "SLAVE_STEP:2.FS - Optimize - 0.00ms - 0B")

    def test_delimiter_in_name_rejected(self) -> None:
        rec = MeasurementRecord("1.General", "Insert - then delete", 0.001, 0)
        with self.assertRaises(ProtocolError):
            encode_step(rec)

    def test_delimiter_in_category_rejected(self) -> None:
        rec = MeasurementRecord("A - B", "step", 0.001, 0)
        with self.assertRaises(ProtocolError):
            encode_step(rec)

    def test_protocol_error_is_value_error(self) -> None:
        self.assertTrue(issubclass(ProtocolError, ValueError))


class TestLabelProblem(unittest.TestCase):
    def test_valid(self) -> None:
        self.assertIsNone(label_problem("Read 256 bytes chunk from random file positions"))
        self.assertIsNone(label_problem("hyphen-ated"))
        self.assertIsNone(label_problem("- leading dash"))
        self.assertIsNone(label_problem("-"))

    def test_invalid(self) -> None:
        self.assertIsNotNone(label_problem(""))
        self.assertIsNotNone(label_problem("a - b"))
        self.assertIsNotNone(label_problem("two\nlines"))

    def test_trailing_dash_rejected(self) -> None:
        self.assertIsNotNone(label_problem("Insert -"))
        self.assertIsNotNone(label_problem("Ops -"))

    def test_trailing_dash_not_encodable(self) -> None:
        with self.assertRaises(ProtocolError):
            encode_step(MeasurementRecord("1.General", "Insert -", 0.001, 5))
        with self.assertRaises(ProtocolError):
            encode_step(MeasurementRecord("Ops -", "Insert", 0.001, 5))


class TestDecodeLine(unittest.TestCase):
    def test_round_trip(self) -> None:
        rec = MeasurementRecord("1.General", "Searching for gaming users", 0.0123, 2048)
        decoded = decode_line(encode_step(rec))
        assert decoded is not None
        self.assertEqual(decoded.category, rec.category)
        self.assertEqual(decoded.name, rec.name)
        self.assertAlmostEqual(decoded.duration_ms, 12.30, places=6)
        self.assertEqual(decoded.allocated_bytes, 2048)

    def test_round_trip_dash_boundaries(self) -> None:
        cases = [("- Ops", "Insert"), ("Ops", "- Insert"), ("-", "-"), ("a-", "b-c")]
        for category, name in cases:
            with self.subTest(category=category, name=name):
                rec = MeasurementRecord(category, name, 0.001, 5)
                decoded = decode_line(encode_step(rec))
                assert decoded is not None
                self.assertEqual((decoded.category, decoded.name), (category, name))
                self.assertEqual(decoded.allocated_bytes, 5)

    def test_duration_precision_is_two_decimals(self) -> None:
        rec = MeasurementRecord("c", "n", 0.0012345, 1)
        decoded = decode_line(encode_step(rec))
        assert decoded is not None
        self.assertAlmostEqual(decoded.duration_ms, 1.23, places=6)

    def test_trailing_newline_ignored(self) -> None:
        decoded = decode_line("SLAVE_STEP:c - n - 1.50ms - 10B\n")
        assert decoded is not None
        self.assertEqual(decoded.allocated_bytes, 10)

    def test_non_step_lines_ignored(self) -> None:
        for line in [
            "SLAVE_START: Performance test sqlite iterations 3",
            "SLAVE_SUCCESS: 11 steps completed in 812.40ms",
            "SLAVE_ERROR: boom",
            "some debug print",
            "",
        ]:
            with self.subTest(line=line):
                self.assertIsNone(decode_line(line))

    def test_too_few_fields_dropped(self) -> None:
        self.assertIsNone(decode_line("SLAVE_STEP:c - n - 1.00ms"))

    def test_unparseable_numbers_dropped(self) -> None:
        self.assertIsNone(decode_line("SLAVE_STEP:c - n - fast - 10B"))
        self.assertIsNone(decode_line("SLAVE_STEP:c - n - 1.00ms - lots"))

    def test_negative_and_non_finite_dropped(self) -> None:
        self.assertIsNone(decode_line("SLAVE_STEP:c - n - -1.00ms - 10B"))
        self.assertIsNone(decode_line("SLAVE_STEP:c - n - 1.00ms - -10B"))
        self.assertIsNone(decode_line("SLAVE_STEP:c - n - infms - 10B"))
        self.assertIsNone(decode_line("SLAVE_STEP:c - n - nanms - 10B"))

    def test_extra_fields_ignored(self) -> None:
        decoded = decode_line("SLAVE_STEP:c - n - 2.00ms - 5B - extra")
        assert decoded is not None
        self.assertEqual(decoded.name, "n")
        self.assertEqual(decoded.allocated_bytes, 5)


class TestDecodeOutput(unittest.TestCase):
    def test_mixed_output_keeps_valid_steps_in_order(self) -> None:
        text = "\n".join(
            [
                "SLAVE_START: Performance test memory iterations 1",
                "SLAVE_SUCCESS: 3 steps completed in 4.00ms",
                "SLAVE_STEP:1.General - first - 1.00ms - 10B",
                "garbage line",
                "SLAVE_STEP:1.General - broken - xms - 10B",
                "SLAVE_STEP:2.FS - second - 2.00ms - 20B",
            ]
        )
        records = decode_output(text)
        self.assertEqual([r.name for r in records], ["first", "second"])

    def test_empty(self) -> None:
        self.assertEqual(decode_output(""), [])


class TestStatusLines(unittest.TestCase):
    def test_start_line(self) -> None:
        self.assertEqual(
            format_start_line("sqlite", 3), "SLAVE_START: Performance test sqlite iterations 3"
        )

    def test_success_line(self) -> None:
        self.assertEqual(
            format_success_line(11, 0.8124), "SLAVE_SUCCESS: 11 steps completed in 812.40ms"
        )

    def test_error_line_is_single_line(self) -> None:
        line = format_error_line("first\n\nsecond")
        self.assertEqual(line, "SLAVE_ERROR: first | second")

    def test_extract_errors(self) -> None:
        text = "SLAVE_START: x\nSLAVE_ERROR: WorkloadError: nope\n"
        self.assertEqual(extract_errors(text), ["WorkloadError: nope"])


if __name__ == "__main__":
    unittest.main()
