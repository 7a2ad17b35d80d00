"""Shared exception hierarchy for unlock services.

Anything raised from here is a systemic failure, distinct from an evaluation
that simply triggered no rules.
"""

# ── Rules ─────────────────────────────────────────────────────────────────────


class RulesEngineError(Exception):
    """Base exception for rules engine errors."""


class InvalidRuleError(RulesEngineError):
    """A stored or submitted rule definition cannot be parsed."""


class InvalidRequestError(RulesEngineError):
    """An evaluation request is malformed."""


# ── Collaborators ─────────────────────────────────────────────────────────────


class RuleStoreError(RulesEngineError):
    """Rule definitions could not be loaded."""


class UsageLedgerError(RulesEngineError):
    """The usage ledger could not be read or written."""
