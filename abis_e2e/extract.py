"""
Pure extraction helpers for values the CRM only exposes as rendered text.

None of these touch a browser: page objects hand over ``page.content()``,
``inner_text`` or URLs and get plain strings back. A value that cannot be
found is returned as ``""`` so callers decide whether that is fatal.
"""
from __future__ import annotations

import re
from typing import Iterable, Sequence

from bs4 import BeautifulSoup

DATE_PATTERN = r"\d{2}-\d{2}-\d{4}"
_DATE_RE = re.compile(rf"({DATE_PATTERN})")
_AMOUNT_RE = re.compile(r"\d{1,3}(?:,\d{3})*(?:\.\d{2})?")
_TOTAL_RE = re.compile(r"Total[^\d]*(\d{1,3}(?:,\d{3})*(?:\.\d{2}))")
_TOTAL_RE_I = re.compile(_TOTAL_RE.pattern, re.IGNORECASE)
_EXCLUDED_TOTALS_RE = re.compile(r"Sub Total|Grand Total", re.IGNORECASE)
_INVOICE_FALLBACK_RE = re.compile(r"[A-Z]{2,5}-\d{3,}")
_CLIENT_ID_RE = re.compile(r"^\s*#\d+", re.MULTILINE)
_LEAD_HREF_RE = re.compile(r"/leads/(\d+)|leadid=(\d+)")
_LEAD_TEXT_RE = re.compile(r"#(\d+)|Lead\s+ID[:\s]*(\d+)|ID[:\s]*(\d+)", re.IGNORECASE)
_SALE_AGENT_RE = re.compile(r"Sale Agent:\s*([A-Za-z .]+)")

PROPOSAL_PREFIX = "PRO"
PREPAYMENT_PREFIX = "PP"
PROFORMA_PREFIX = "EST"


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def _squash(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def find_document_number(text: str, prefix: str) -> str:
    match = re.search(rf"{re.escape(prefix)}-\d+", text or "")
    return match.group(0) if match else ""


def proposal_number(text: str) -> str:
    return find_document_number(text, PROPOSAL_PREFIX)


def prepayment_number(text: str) -> str:
    return find_document_number(text, PREPAYMENT_PREFIX)


def proforma_number(text: str) -> str:
    return find_document_number(text, PROFORMA_PREFIX)


def invoice_number(html: str) -> str:
    span = _soup(html).select_one("span#invoice-number")
    if span is not None:
        return span.get_text().strip()
    match = _INVOICE_FALLBACK_RE.search(html or "")
    return match.group(0) if match else ""


def value_after_bold_label(html: str, label: str) -> str:
    """Text that follows a ``<span class="bold">label</span>`` inside its parent."""
    for span in _soup(html).select("span.bold"):
        if _squash(span.get_text()) != label:
            continue
        parent = span.parent
        if parent is None:
            continue
        parent_text = _squash(parent.get_text())
        if parent_text:
            return parent_text.replace(label, "", 1).strip()
    return ""


def labelled_date(text: str, label: str, loose: bool = False) -> str:
    if loose:
        pattern = re.compile(rf"{re.escape(label)}[:\s]*({DATE_PATTERN})", re.IGNORECASE)
    else:
        pattern = re.compile(rf"{re.escape(label)}:\s*({DATE_PATTERN})")
    match = pattern.search(text or "")
    return match.group(1) if match else ""


def invoice_date(html: str) -> str:
    return value_after_bold_label(html, "Invoice Date:") or labelled_date(html, "Invoice Date")


def due_date(html: str) -> str:
    return value_after_bold_label(html, "Due Date:") or labelled_date(html, "Due Date")


def sale_agent(html: str) -> str:
    agent = value_after_bold_label(html, "Sale Agent:")
    if agent:
        return agent
    match = _SALE_AGENT_RE.search(html or "")
    return match.group(1).strip() if match else ""


def first_date(text: str) -> str:
    match = _DATE_RE.search(text or "")
    return match.group(1) if match else ""


def nearest_date(text: str, anchor: str) -> str:
    """The dd-mm-yyyy date whose offset is closest to the first ``anchor``."""
    text = text or ""
    anchor_at = text.find(anchor)
    closest = ""
    closest_distance = None
    for match in _DATE_RE.finditer(text):
        distance = abs(match.start() - anchor_at)
        if closest_distance is None or distance < closest_distance:
            closest_distance = distance
            closest = match.group(1)
    return closest


def total_from_rows(row_texts: Iterable[str], page_html: str = "") -> str:
    """
    Picks the document total out of table rows mentioning "Total".

    Sub/Grand totals are ignored. A ``Total ... 1,234.00`` row wins outright;
    otherwise the first amount of the first qualifying row is kept, and the
    whole page is scanned as a last resort.
    """
    best = ""
    for text in row_texts:
        if not text or not re.search("Total", text, re.IGNORECASE):
            continue
        if _EXCLUDED_TOTALS_RE.search(text):
            continue
        direct = _TOTAL_RE.search(text)
        if direct:
            return direct.group(1)
        if not best:
            amount = _AMOUNT_RE.search(text)
            if amount:
                best = amount.group(0)
    if not best:
        match = _TOTAL_RE_I.search(page_html or "")
        if match:
            best = match.group(1)
    return best


def client_id(body_text: str) -> str:
    match = _CLIENT_ID_RE.search(body_text or "")
    return match.group(0).strip() if match else ""


def lead_id_from_href(href: str) -> str:
    match = _LEAD_HREF_RE.search(href or "")
    if not match:
        return ""
    return match.group(1) or match.group(2) or ""


def lead_id_from_text(text: str) -> str:
    match = _LEAD_TEXT_RE.search(text or "")
    if not match:
        return ""
    return next((group for group in match.groups() if group), "")


def service_number_from_url(url: str) -> str:
    match = re.search(r"/projects/view/(\d+)", url or "")
    return match.group(1) if match else ""


def credit_note_id_from_url(url: str) -> str:
    match = re.search(r"credit_notes/(\d+)", url or "")
    return match.group(1) if match else ""


def trailing_id(url: str) -> str:
    match = re.search(r"(\d+)(?!.*\d)", url or "")
    return match.group(1) if match else ""


def proposal_digits(number: str) -> tuple[str, str]:
    raw = "".join(re.findall(r"\d+", number or ""))
    return raw, (str(int(raw)) if raw else "")


def match_proposal_option(options: Iterable[Sequence[str]], number: str) -> str:
    """
    Finds the dropdown option for an accepted proposal.

    ``options`` yields ``(text, data_text, value)``. The CRM sometimes shows
    ``PRO-001156`` and sometimes only ``1156``, so the visible text, the
    ``data-text`` attribute and the value are all tried.
    """
    normalized = (number or "").strip()
    raw, as_int = proposal_digits(normalized)
    for text, data_text, value in options:
        text = (text or "").strip()
        data_text = data_text or ""
        value = value or ""
        if normalized and normalized in text:
            return value or data_text
        if raw and (data_text in (raw, as_int) or value in (raw, as_int)):
            return value or data_text
        if as_int and as_int in text:
            return value or data_text
    return ""


def valid_options(
    options: Iterable[str],
    exclude_exact: Sequence[str] = (),
    exclude_containing: Sequence[str] = (),
) -> list[str]:
    out = []
    lowered = [item.lower() for item in exclude_containing]
    for option in options:
        if not option or not option.strip():
            continue
        if option in exclude_exact or option.strip() in exclude_exact:
            continue
        if any(item in option.lower() for item in lowered):
            continue
        out.append(option)
    return out
