"""
Rules Service package.

This package evaluates declarative rule trees against caller-supplied
facts and explains every verdict. It provides:

- app.main: API surface for rule checks, the rule registry and health.
- app.rules: Rule tree model, three-valued status logic, evaluator and
  interchange encoding.

Guidelines:
- The service never fetches facts; callers send a complete fact mapping.
- Rule trees are immutable once built and safe to share across requests.
- Keep rule evaluation deterministic and observable (metrics + logs).
"""
