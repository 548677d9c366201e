"""
Shared test constants.

This module provides constants that are used across multiple test files.
It keeps the denomination set, account ids and token settings consistent
between the engine, codec, facade and API tests.
"""

# Matches the default [currency] denominations in config/ledger.example.ini
TEST_DENOMINATIONS = ("coin", "copper", "silver", "gold")
TEST_DECIMAL_PLACES = 2

TEST_NAMESPACE = "currency_ledger"
TEST_SECRET = "test-token-secret"

ALICE = "alice"
BOB = "bob"
CAROL = "carol"
