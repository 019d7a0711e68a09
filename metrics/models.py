"""
metrics/models.py -- Domain dataclass for a dashboard metric.

Pure data container with zero logic. Ownership filtering lives in
metrics/store.py; transport shape lives in api/models.py.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Metric:
    """A named value tracked by one user.

    value is kept as a string exactly as submitted -- "5", "5.0" and "5k"
    are all distinct values and nothing parses them as numbers.

    id is None before the record is written to the database.
    """

    user_id: str
    title: str
    value: str
    category: str
    id: Optional[str] = None
