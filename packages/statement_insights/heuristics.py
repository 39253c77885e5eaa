"""Local merchant extraction from raw statement descriptions.

Rules are tried in order and the first match wins; later rules are never
consulted. Order is therefore part of the contract: a rule describing a
specific statement layout must precede any rule that would also claim the
same text more loosely. Notes on each rule's position:

- The M-PESA SMS layouts (till, paybill, card purchase, agent withdrawal) use
  distinctive leading phrases and cannot collide with the bank layouts.
- ``ibkg_airtime`` precedes the ``IBKG ... MOBILE MONEY`` rules; airtime lines
  carry no payee name and would otherwise be left unresolved.
- ``ibkg_named_payee`` requires a name between the phone number and
  ``-MOBILE MONEY``; ``ibkg_phone_payee`` only fires when there is none.
- ``bank_reference`` is last: the ``KE-...`` reference also trails the
  ``IBKG`` lines, so it must only see lines no earlier rule claimed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .models import HeuristicResult

_WS_RE = re.compile(r"\s+")


@dataclass(frozen=True, slots=True)
class PatternRule:
    """A named regular expression with the capture group to extract.

    ``prefix`` is prepended to the captured text (e.g. ``"Agent "`` so agent
    withdrawals read as ``Agent 12345``).
    """

    name: str
    pattern: re.Pattern[str]
    group: int = 1
    prefix: str = ""

    def extract(self, text: str) -> str | None:
        match = self.pattern.search(text)
        if match is None:
            return None
        captured = match.group(self.group)
        if not captured or not captured.strip():
            return None
        return _WS_RE.sub(" ", self.prefix + captured.strip()).strip()


def _rule(name: str, pattern: str, *, prefix: str = "", group: int = 1) -> PatternRule:
    return PatternRule(name=name, pattern=re.compile(pattern, re.IGNORECASE), group=group, prefix=prefix)


MERCHANT_RULES: tuple[PatternRule, ...] = (
    _rule("mpesa_till", r"Lipa na M-PESA to (.+?)(?: Transaction ID:|$)"),
    _rule("mpesa_paybill", r"Pay Bill to (.+?)(?: Acc No\..*|$)"),
    _rule("mpesa_paybill_statement", r"M-PESA Paybill, (.+?),"),
    _rule("card_purchase", r"Card Purchase at (.+?)(?: on .*|$)"),
    _rule("agent_withdrawal", r"Withdrawal from Agent ([\w\s-]+?)(?: at .*|$)", prefix="Agent "),
    _rule("ibkg_airtime", r"IBKG MPESA PAY TO (\d+)-AIRTIME\b", prefix="Airtime "),
    _rule("ibkg_named_payee", r"IBKG MPESA PAY TO \d+-(.+?)-MOBILE MONEY"),
    _rule("ibkg_phone_payee", r"IBKG MPESA PAY TO (\d{9,12})-MOBILE MONEY", prefix="M-PESA "),
    _rule("debit_card", r"DEBIT CARD TXN AT (.+?)(?:\s{2,}| \d{2}-\d{2}-\d{4})"),
    _rule("bank_reference", r"KE-\d{3}-\d{6}-\d+-\d+-\d+ (.+?)\s*\|"),
)


POINTS_RULES: tuple[PatternRule, ...] = (
    # "You have earned 20 points. Total points: 450"
    _rule("total_points", r"Total points:?\s*([\d,]+)"),
    # "Bonga Points Bal: 1020"
    _rule("points_bal", r"Points Bal:?\s*([\d,]+)"),
    _rule("points_balance", r"Points Balance:?\s*([\d,]+)"),
)


def extract_merchant(description: str) -> HeuristicResult:
    """Return the merchant named by the first matching rule, if any.

    When no rule matches, ``merchant`` is ``None`` and ``cache_key`` is the
    trimmed description itself.
    """

    trimmed = description.strip()
    for rule in MERCHANT_RULES:
        merchant = rule.extract(trimmed)
        if merchant:
            return HeuristicResult(merchant=merchant, cache_key=merchant)
    return HeuristicResult(merchant=None, cache_key=trimmed)


def matching_rules(description: str) -> list[str]:
    """Names of every merchant rule that matches, in evaluation order.

    Only the first name determines :func:`extract_merchant`'s answer; the rest
    are reported so overlapping rules are visible rather than silent.
    """

    trimmed = description.strip()
    return [rule.name for rule in MERCHANT_RULES if rule.extract(trimmed)]


def extract_points(text: str) -> int | None:
    """Return a loyalty-points balance mentioned in ``text`` (commas stripped)."""

    for rule in POINTS_RULES:
        raw = rule.extract(text)
        if raw is None:
            continue
        digits = raw.replace(",", "")
        if digits.isdigit():
            return int(digits)
    return None


__all__ = [
    "MERCHANT_RULES",
    "POINTS_RULES",
    "PatternRule",
    "extract_merchant",
    "extract_points",
    "matching_rules",
]
