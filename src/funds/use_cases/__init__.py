"""Use-case level logic.

These modules implement the fund allocation rules (ledger, company matching,
equitable sharing) on data returned by integrations (workbooks, Google Sheets).

They should be:
- deterministic
- unit-testable
- free of file/network code
"""
