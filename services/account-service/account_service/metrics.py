"""Prometheus counters for the account workflows."""

from __future__ import annotations

from prometheus_client import Counter

SIGNUPS = Counter(
    "account_signups_total",
    "Accounts registered, by role.",
    ["role"],
)

LOGIN_ATTEMPTS = Counter(
    "account_login_attempts_total",
    "Login attempts, by outcome (success, failure, throttled).",
    ["outcome"],
)

TOKEN_REFRESHES = Counter(
    "account_token_refreshes_total",
    "Refresh token exchanges, by outcome (success, failure).",
    ["outcome"],
)
