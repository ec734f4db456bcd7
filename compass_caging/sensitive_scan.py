"""Heuristic scanner for donor financial and identity data left in free-text fields."""

from __future__ import annotations

import re
from typing import Any, Iterable

_SSN_PATTERN = re.compile(r"\b(?:\d{3}-\d{2}-\d{4}|\d{3}\s\d{2}\s\d{4})\b")
_SSN_CONTEXT_PATTERN = re.compile(
    r"\b(?:ssn|social\s*security(?:\s*(?:number|no\.?|#))?)\b[^\n\r]{0,16}?(\d{9})\b",
    re.IGNORECASE,
)
_CARD_PATTERN = re.compile(r"\b(?:\d[ -]?){12,18}\d\b")
_ROUTING_CONTEXT_PATTERN = re.compile(
    r"\b(?:routing|aba|rtn)\b[^\n\r]{0,20}?(\d{9})\b",
    re.IGNORECASE,
)
_ACCOUNT_CONTEXT_PATTERN = re.compile(
    r"\b(?:acct|account)\s*(?:number|no\.?|#)?\b[^\n\r]{0,12}?[:#-]?\s*(\d{6,17})\b",
    re.IGNORECASE,
)
_DOB_PATTERN = re.compile(
    r"\b(?:dob|d\.o\.b\.|date\s*of\s*birth|born(?:\s+on)?|birthday)\b[^\n\r]{0,24}"
    r"(?:\d{1,2}[/-]\d{1,2}[/-]\d{2,4}|\d{4}-\d{2}-\d{2}|[A-Za-z]{3,9}\s+\d{1,2},\s+\d{4})",
    re.IGNORECASE,
)
_CVV_PATTERN = re.compile(r"\b(?:cvv2?|cvc|security\s*code)\b[^\n\r]{0,8}?\b\d{3,4}\b", re.IGNORECASE)
_DRIVERS_LICENSE_PATTERN = re.compile(
    r"\b(?:driver'?s?\s*licen[cs]e|dl\s*#|dl\s*number)\b[^\n\r]{0,16}[:#-]?\s*[A-Z0-9-]{5,}",
    re.IGNORECASE,
)


def luhn_valid(digits: str) -> bool:
    if not digits.isdigit() or not 13 <= len(digits) <= 19:
        return False
    total = 0
    for index, character in enumerate(reversed(digits)):
        value = int(character)
        if index % 2 == 1:
            value *= 2
            if value > 9:
                value -= 9
        total += value
    return total % 10 == 0


def aba_routing_valid(digits: str) -> bool:
    """ABA checksum: 3-7-1 weights over the nine digits sum to a multiple of 10."""

    if len(digits) != 9 or not digits.isdigit() or digits == "000000000":
        return False
    weights = (3, 7, 1) * 3
    return sum(int(digit) * weight for digit, weight in zip(digits, weights)) % 10 == 0


def _severity_rank(severity: str) -> int:
    return {"High": 3, "Medium": 2, "Low": 1}.get(severity, 0)


def mask_value(text: str) -> str:
    clean = " ".join(text.split())
    digits = re.sub(r"\D", "", clean)
    if len(digits) >= 4:
        return f"***{digits[-4:]}"
    if len(clean) <= 6:
        return "***"
    return f"{clean[:2]}...{clean[-2:]}"


def _excerpt(text: str, start: int, end: int, window: int = 30) -> str:
    left = max(0, start - window)
    right = min(len(text), end + window)
    snippet = " ".join((text[left:start] + mask_value(text[start:end]) + text[end:right]).split())
    if left > 0:
        snippet = "..." + snippet
    if right < len(text):
        snippet = snippet + "..."
    return snippet


class SensitiveDataScanner:
    """Scan free-text records for values that should not be stored in notes."""

    def scan_records(self, records: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
        findings: list[dict[str, Any]] = []

        for record in records:
            record_id = record.get("record_id")
            fields = record.get("fields")
            if not isinstance(record_id, int) or not isinstance(fields, dict):
                continue

            for field_name, raw_value in fields.items():
                if not isinstance(raw_value, str) or not raw_value.strip():
                    continue
                findings.extend(
                    self.scan_text(
                        raw_value.strip(),
                        object_name=str(record.get("object_name") or "Unknown"),
                        table_name=str(record.get("table_name") or "unknown"),
                        record_id=record_id,
                        field_name=str(field_name),
                    )
                )

        findings.sort(
            key=lambda row: (
                _severity_rank(str(row["severity"])),
                int(row["confidence"]),
                str(row["object_name"]),
                int(row["record_id"]),
            ),
            reverse=True,
        )
        return findings

    def scan_text(
        self,
        text: str,
        object_name: str = "Text",
        table_name: str = "",
        record_id: int = 0,
        field_name: str = "",
    ) -> list[dict[str, Any]]:
        findings: list[dict[str, Any]] = []
        seen_spans: set[tuple[int, int]] = set()

        def add(signal: str, severity: str, confidence: int, reason: str, start: int, end: int) -> None:
            if (start, end) in seen_spans:
                return
            seen_spans.add((start, end))
            findings.append(
                {
                    "object_name": object_name,
                    "table_name": table_name,
                    "record_id": record_id,
                    "field_name": field_name,
                    "signal": signal,
                    "severity": severity,
                    "confidence": confidence,
                    "matched_text": mask_value(text[start:end]),
                    "context": _excerpt(text, start, end),
                    "reason": reason,
                }
            )

        for match in _SSN_PATTERN.finditer(text):
            add("SSN", "High", 97, "Matches US Social Security Number pattern.", match.start(), match.end())

        for match in _SSN_CONTEXT_PATTERN.finditer(text):
            add("SSN", "High", 95, "Nine digits labelled as a Social Security Number.", match.start(1), match.end(1))

        for match in _CARD_PATTERN.finditer(text):
            digits = re.sub(r"\D", "", match.group(0))
            if luhn_valid(digits):
                add(
                    "Card Number",
                    "High",
                    96,
                    "Digit run passes the Luhn check used by payment cards.",
                    match.start(),
                    match.end(),
                )

        for match in _CVV_PATTERN.finditer(text):
            add("Card Security Code", "High", 90, "Contains a card security code marker.", match.start(), match.end())

        for match in _ROUTING_CONTEXT_PATTERN.finditer(text):
            if aba_routing_valid(match.group(1)):
                add(
                    "Routing Number",
                    "Medium",
                    88,
                    "Nine digits labelled as routing and passing the ABA checksum.",
                    match.start(1),
                    match.end(1),
                )

        for match in _ACCOUNT_CONTEXT_PATTERN.finditer(text):
            add(
                "Bank Account Number",
                "High",
                85,
                "Contains a bank account number marker.",
                match.start(1),
                match.end(1),
            )

        for match in _DOB_PATTERN.finditer(text):
            add("Date of Birth", "Medium", 84, "Contains DOB/date-of-birth context.", match.start(), match.end())

        for match in _DRIVERS_LICENSE_PATTERN.finditer(text):
            add("Driver License", "Medium", 80, "Contains a driver license marker.", match.start(), match.end())

        return findings
