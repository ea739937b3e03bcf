"""Integration adapters for external systems (workbooks, Google Sheets).

Keep these modules small and testable:
- No allocation rules
- Pure IO + parsing helpers
- Every source yields rows as ``list[list[str]]``
"""
