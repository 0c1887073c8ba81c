"""Prometheus counters for authentication outcomes."""

from __future__ import annotations

from prometheus_client import Counter

SIGN_UPS = Counter(
    "subtracker_auth_sign_ups_total",
    "Account registration attempts by outcome.",
    ["outcome"],
)

SIGN_INS = Counter(
    "subtracker_auth_sign_ins_total",
    "Sign-in attempts by outcome.",
    ["outcome"],
)
