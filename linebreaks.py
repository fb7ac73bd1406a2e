"""
Line terminator classification and repair planning.

Everything here is pure: functions take an already segmented list of
terminator occurrences (see scan_terminators) and return new values.
Nothing touches a live buffer.
"""

import enum
import re
from typing import Dict, Iterable, Iterator, List, NamedTuple, Optional


class LineSenseError(Exception):
    """Base class for errors raised by LineSense."""


class InvalidTargetKindError(LineSenseError, ValueError):
    """Raised when a repair target is not a concrete line terminator."""


class LineTerminatorKind(enum.Enum):
    CRLF = "\r\n"
    CR = "\r"
    LF = "\n"
    NEL = "\u0085"
    LS = "\u2028"
    PS = "\u2029"
    NONE = ""

    @property
    def text(self) -> str:
        return self.value

    @property
    def length(self) -> int:
        return len(self.value)

    @property
    def label(self) -> str:
        return _LABELS[self]

    @classmethod
    def from_name(cls, name: str) -> "LineTerminatorKind":
        """Resolve a case-insensitive name such as 'crlf' to a terminator kind."""
        try:
            kind = cls[name.strip().upper()]
        except (KeyError, AttributeError):
            raise InvalidTargetKindError(
                f"Unknown line terminator: {name!r}"
            ) from None
        if kind is cls.NONE:
            raise InvalidTargetKindError("NONE is not a line terminator")
        return kind


_LABELS: Dict[LineTerminatorKind, str] = {
    LineTerminatorKind.CRLF: "CR/LF",
    LineTerminatorKind.CR: "CR",
    LineTerminatorKind.LF: "LF",
    LineTerminatorKind.NEL: "NEL",
    LineTerminatorKind.LS: "LS",
    LineTerminatorKind.PS: "PS",
    LineTerminatorKind.NONE: "",
}

_KINDS_BY_TEXT: Dict[str, LineTerminatorKind] = {
    kind.value: kind for kind in LineTerminatorKind if kind.value
}

# CRLF must be tried before the single-character alternatives
TERMINATOR_PATTERN = re.compile("\r\n|[\r\n\u0085\u2028\u2029]")
# U+0085 is an ordinary character in single-byte legacy encodings
TERMINATOR_PATTERN_WITHOUT_NEL = re.compile("\r\n|[\r\n\u2028\u2029]")


class LineTerminatorOccurrence(NamedTuple):
    kind: LineTerminatorKind
    start_offset: int
    length: int

    @classmethod
    def of(cls, kind: LineTerminatorKind, start_offset: int) -> "LineTerminatorOccurrence":
        return cls(kind, start_offset, kind.length)


class AnalysisResult(NamedTuple):
    dominant_kind: LineTerminatorKind
    is_mixture: bool
    display_label: str


EMPTY_RESULT = AnalysisResult(LineTerminatorKind.NONE, False, "")


class ReplacementOperation(NamedTuple):
    start_offset: int
    remove_length: int
    insert_text: str


class HighlightLevel(enum.Enum):
    NONE = "none"
    NOTICE = "notice"
    WARNING = "warning"


def scan_terminators(
    text: str, recognize_nel: bool = True
) -> Iterator[LineTerminatorOccurrence]:
    """
    Segment text into one terminator occurrence per physical line.

    A trailing segment with no terminator yields a NONE occurrence at
    len(text). Empty text yields nothing. With recognize_nel=False, U+0085
    is treated as line content.
    """
    pattern = TERMINATOR_PATTERN if recognize_nel else TERMINATOR_PATTERN_WITHOUT_NEL
    line_start = 0
    for match in pattern.finditer(text):
        yield LineTerminatorOccurrence.of(_KINDS_BY_TEXT[match.group()], match.start())
        line_start = match.end()
    if line_start < len(text):
        yield LineTerminatorOccurrence.of(LineTerminatorKind.NONE, len(text))


def label_for(dominant_kind: LineTerminatorKind, is_mixture: bool) -> str:
    label = dominant_kind.label
    if is_mixture:
        label += "+"
    return label


def classify(occurrences: Iterable[LineTerminatorOccurrence]) -> AnalysisResult:
    """Summarize a snapshot's terminators as a dominant kind plus mixture flag."""
    # dicts keep insertion order, so max() below prefers the first-seen kind on ties
    counts: Dict[LineTerminatorKind, int] = {}
    for occurrence in occurrences:
        if occurrence.kind is LineTerminatorKind.NONE:
            continue
        counts[occurrence.kind] = counts.get(occurrence.kind, 0) + 1

    if not counts:
        return EMPTY_RESULT

    is_mixture = len(counts) > 1
    dominant_kind = max(counts, key=counts.__getitem__)
    return AnalysisResult(dominant_kind, is_mixture, label_for(dominant_kind, is_mixture))


def highlight_for(
    result: Optional[AnalysisResult],
    preferred: LineTerminatorKind = LineTerminatorKind.CRLF,
) -> HighlightLevel:
    """How loudly a presentation layer should flag an analysis result."""
    if result is None or result.dominant_kind is LineTerminatorKind.NONE:
        return HighlightLevel.NONE
    if result.is_mixture:
        return HighlightLevel.WARNING
    if result.dominant_kind is preferred:
        return HighlightLevel.NONE
    return HighlightLevel.NOTICE


def _check_target(target_kind: object) -> LineTerminatorKind:
    if not isinstance(target_kind, LineTerminatorKind):
        raise InvalidTargetKindError(
            f"Repair target must be a LineTerminatorKind, got {target_kind!r}"
        )
    if target_kind is LineTerminatorKind.NONE:
        raise InvalidTargetKindError("Cannot repair line terminators to NONE")
    return target_kind


def plan_repair(
    occurrences: Iterable[LineTerminatorOccurrence],
    target_kind: LineTerminatorKind,
) -> List[ReplacementOperation]:
    """
    Compute the terminator replacements that normalize a snapshot to target_kind.

    Operations come back last-line-first: applying them in order never shifts
    the offset of an operation that has not been applied yet.
    """
    target = _check_target(target_kind)
    operations = [
        ReplacementOperation(occurrence.start_offset, occurrence.length, target.text)
        for occurrence in occurrences
        if occurrence.kind is not LineTerminatorKind.NONE and occurrence.kind is not target
    ]
    operations.sort(key=lambda op: op.start_offset, reverse=True)
    return operations


def apply_operations(text: str, operations: Iterable[ReplacementOperation]) -> str:
    """Apply descending replacement operations to a string and return the result."""
    for op in operations:
        end = op.start_offset + op.remove_length
        text = text[: op.start_offset] + op.insert_text + text[end:]
    return text
