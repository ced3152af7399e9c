"""
record_parser.py: delimited FIELD: value records from model output.

Models are asked to wrap each record in explicit markers:

    ---START TASK---
    TYPE: Multiple Choice
    TEXT: What is 2 + 2?
    SOLUTION: Step 1: add.
    Step 2: done.
    ---END TASK---

The parser is deliberately lenient about everything around the records:
  - commentary before the first start marker is dropped;
  - segments between markers that carry none of the expected field markers
    (blank gaps, stray chatter) are dropped;
  - continuation lines belong to the most recent field, so multi-line
    values such as worked solutions survive intact.

It is strict about the records themselves: a surviving segment that lacks a
required field raises ParseFailure naming the missing field and the fields
that were found, which is what you need to diagnose model drift.
"""
import re

from examcraft.core.errors import ParseFailure

_FIELD_RE = re.compile(r"^([A-Z_]+):\s*(.*)$")


def extract_fields(segment: str) -> dict[str, str]:
    """Scan a record body line by line into a field map."""
    fields: dict[str, str] = {}
    current: str | None = None
    lines: list[str] = []

    for line in segment.splitlines():
        m = _FIELD_RE.match(line)
        if m:
            if current is not None:
                fields[current] = "\n".join(lines).strip()
            current = m.group(1)
            lines = [m.group(2)]
        elif current is not None and line.strip():
            lines.append(line)

    if current is not None:
        fields[current] = "\n".join(lines).strip()
    return fields


def _has_field_marker(segment: str, field_names: list[str]) -> bool:
    return any(f"{name}:" in segment for name in field_names)


def parse_records(
    raw_text: str,
    start_marker: str,
    end_marker: str,
    required_fields: list[str],
) -> list[dict[str, str]]:
    """
    Split raw_text into marker-delimited records and extract their fields.

    Returns one field map per surviving segment, in source order (possibly
    empty). Raises ParseFailure when a surviving segment is missing a
    required field (empty values count as missing).
    """
    start = raw_text.find(start_marker)
    if start == -1:
        return []
    body = raw_text[start:]

    splitter = re.compile(f"{re.escape(start_marker)}|{re.escape(end_marker)}")
    segments = [
        s for s in splitter.split(body)
        if s.strip() and _has_field_marker(s, required_fields)
    ]

    records: list[dict[str, str]] = []
    for index, segment in enumerate(segments, start=1):
        fields = extract_fields(segment)
        for name in required_fields:
            if not fields.get(name):
                found = list(fields)
                raise ParseFailure(
                    f"Missing required field {name} in record {index}. "
                    f"Available fields: {', '.join(found) or '(none)'}",
                    missing=[n for n in required_fields if not fields.get(n)],
                    found=found,
                )
        records.append(fields)
    return records
