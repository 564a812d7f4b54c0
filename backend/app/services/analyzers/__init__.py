"""
Heuristic Analyzers Package.

WHAT:
    Deterministic analyses over fetched Google Ads snapshots. None of these
    modules call the API themselves except audit.run_enterprise_audit().

MODULES:
    - conditions: Condition classes (Threshold, FieldEquals, Composite, Not)
    - custom_rules: Rule engine producing proposed optimizations
    - health_score: Weighted 0-100 account health score
    - budget_pacing: Month-to-date spend vs. daily budget
    - audit: Period comparison, ad checks, prioritised recommendations
"""
