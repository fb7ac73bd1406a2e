#!/usr/bin/env python3
"""
Tests for line terminator scanning and classification.
"""

import sys
import unittest
from pathlib import Path

# Add parent directory to path to import the modules under test
sys.path.insert(0, str(Path(__file__).parent.parent))
from linebreaks import (  # pylint: disable=wrong-import-position
    EMPTY_RESULT,
    AnalysisResult,
    HighlightLevel,
    InvalidTargetKindError,
    LineTerminatorKind as K,
    LineTerminatorOccurrence as Occ,
    classify,
    highlight_for,
    label_for,
    scan_terminators,
)


class TestScanTerminators(unittest.TestCase):
    def test_empty_text(self) -> None:
        self.assertEqual(list(scan_terminators("")), [])

    def test_crlf_is_one_terminator(self) -> None:
        occurrences = list(scan_terminators("ab\r\ncd\r\n"))
        self.assertEqual(occurrences, [Occ(K.CRLF, 2, 2), Occ(K.CRLF, 6, 2)])

    def test_all_kinds(self) -> None:
        text = "a\rb\nc\u0085d\u2028e\u2029f"
        kinds = [occ.kind for occ in scan_terminators(text)]
        self.assertEqual(kinds, [K.CR, K.LF, K.NEL, K.LS, K.PS, K.NONE])

    def test_cr_followed_by_crlf(self) -> None:
        occurrences = list(scan_terminators("\r\r\n"))
        self.assertEqual(occurrences, [Occ(K.CR, 0, 1), Occ(K.CRLF, 1, 2)])

    def test_final_line_without_terminator(self) -> None:
        occurrences = list(scan_terminators("one\ntwo"))
        self.assertEqual(occurrences[-1], Occ(K.NONE, 7, 0))

    def test_no_none_after_trailing_terminator(self) -> None:
        occurrences = list(scan_terminators("one\n"))
        self.assertEqual(occurrences, [Occ(K.LF, 3, 1)])

    def test_nel_can_be_treated_as_content(self) -> None:
        occurrences = list(scan_terminators("a\u0085b\r\n", recognize_nel=False))
        self.assertEqual(occurrences, [Occ(K.CRLF, 3, 2)])

    def test_lengths(self) -> None:
        for occ in scan_terminators("a\r\nb\nc"):
            self.assertEqual(occ.length, occ.kind.length)


class TestClassify(unittest.TestCase):
    def test_empty_sequence(self) -> None:
        self.assertEqual(classify([]), AnalysisResult(K.NONE, False, ""))

    def test_only_none_entries(self) -> None:
        self.assertIs(classify([Occ.of(K.NONE, 0)]), EMPTY_RESULT)

    def test_single_kind_labels(self) -> None:
        expected = {
            K.CRLF: "CR/LF",
            K.CR: "CR",
            K.LF: "LF",
            K.NEL: "NEL",
            K.LS: "LS",
            K.PS: "PS",
        }
        for kind, label in expected.items():
            with self.subTest(kind=kind):
                result = classify(
                    [Occ.of(kind, 0), Occ.of(kind, 5), Occ.of(K.NONE, 9)]
                )
                self.assertEqual(result, AnalysisResult(kind, False, label))
                self.assertFalse(result.display_label.endswith("+"))

    def test_mixture(self) -> None:
        occurrences = [
            Occ.of(K.CRLF, 0),
            Occ.of(K.LF, 10),
            Occ.of(K.CRLF, 20),
            Occ.of(K.NONE, 30),
        ]
        self.assertEqual(classify(occurrences), AnalysisResult(K.CRLF, True, "CR/LF+"))

    def test_tie_goes_to_first_seen(self) -> None:
        occurrences = [
            Occ.of(K.CR, 0),
            Occ.of(K.LF, 2),
            Occ.of(K.LF, 4),
            Occ.of(K.CR, 6),
        ]
        for _ in range(5):
            result = classify(occurrences)
            self.assertIs(result.dominant_kind, K.CR)
            self.assertEqual(result.display_label, "CR+")

    def test_tie_does_not_follow_first_to_reach_max(self) -> None:
        occurrences = [Occ.of(K.LF, 0), Occ.of(K.CR, 1), Occ.of(K.CR, 2), Occ.of(K.LF, 3)]
        self.assertIs(classify(occurrences).dominant_kind, K.LF)

    def test_majority_wins(self) -> None:
        occurrences = [Occ.of(K.LF, 0), Occ.of(K.CR, 1), Occ.of(K.CR, 2)]
        self.assertEqual(classify(occurrences), AnalysisResult(K.CR, True, "CR+"))

    def test_accepts_generator(self) -> None:
        result = classify(scan_terminators("a\nb\nc\u2028"))
        self.assertEqual(result.display_label, "LF+")

    def test_label_for(self) -> None:
        self.assertEqual(label_for(K.PS, False), "PS")
        self.assertEqual(label_for(K.NEL, True), "NEL+")
        self.assertEqual(label_for(K.NONE, False), "")


class TestHighlight(unittest.TestCase):
    def test_no_result(self) -> None:
        self.assertIs(highlight_for(None), HighlightLevel.NONE)
        self.assertIs(highlight_for(EMPTY_RESULT), HighlightLevel.NONE)

    def test_preferred_kind(self) -> None:
        result = AnalysisResult(K.CRLF, False, "CR/LF")
        self.assertIs(highlight_for(result), HighlightLevel.NONE)

    def test_other_kind(self) -> None:
        result = AnalysisResult(K.LF, False, "LF")
        self.assertIs(highlight_for(result), HighlightLevel.NOTICE)
        self.assertIs(highlight_for(result, preferred=K.LF), HighlightLevel.NONE)

    def test_mixture(self) -> None:
        result = AnalysisResult(K.CRLF, True, "CR/LF+")
        self.assertIs(highlight_for(result), HighlightLevel.WARNING)


class TestFromName(unittest.TestCase):
    def test_names(self) -> None:
        self.assertIs(K.from_name("crlf"), K.CRLF)
        self.assertIs(K.from_name(" Lf "), K.LF)
        self.assertIs(K.from_name("PS"), K.PS)

    def test_unknown_name(self) -> None:
        with self.assertRaises(InvalidTargetKindError):
            K.from_name("mixed")

    def test_none_is_rejected(self) -> None:
        with self.assertRaises(InvalidTargetKindError):
            K.from_name("none")


if __name__ == "__main__":
    unittest.main()
