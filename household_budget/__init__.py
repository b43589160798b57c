"""Top-level package for the household budget dashboard.

The primary modules are:

* ``ledger`` – normalizes raw transaction rows into ``Transaction`` records
* ``plan`` – extracts budgets and balances from the PLAN worksheet
* ``aggregation`` – monthly totals, breakdowns, trailing averages and projections
* ``forecast`` – multi-month projection and sheet write-through
* ``store`` – HTTP client for the spreadsheet service
* ``session`` – ties the above together for one dashboard user
* ``dashboard`` – the Streamlit app

To run the dashboard from the command line you can execute:

```bash
streamlit run household_budget/dashboard.py
```
"""

from . import aggregation  # noqa: F401  # re-exported for convenience
from . import forecast  # noqa: F401  # re-exported for convenience
from . import ledger  # noqa: F401  # re-exported for convenience
from . import plan  # noqa: F401  # re-exported for convenience
from . import visualization  # noqa: F401  # re-exported for convenience
# Import dashboard lazily.  Streamlit may not be installed in all
# environments (e.g. during unit testing).
try:
    from . import dashboard  # type: ignore  # noqa: F401
except ModuleNotFoundError:
    dashboard = None  # type: ignore


__all__ = ["aggregation", "forecast", "ledger", "plan", "visualization", "dashboard"]
