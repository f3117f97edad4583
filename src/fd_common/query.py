"""FilterSet — typed, parameterised WHERE-clause composition for listings.

Only whitelisted column expressions can be filtered on; values always travel
as bind parameters. Build the set, then ``compile()`` once:

    fs = FilterSet({"status": "o.order_status", "created_from": "o.created_at"})
    fs.eq("status", "ready").gte("created_from", start)
    where_sql, params = fs.compile()
"""

from typing import Any


class FilterSet:
    def __init__(self, columns: dict[str, str]) -> None:
        self._columns = dict(columns)
        self._clauses: list[str] = []
        self._params: dict[str, Any] = {}

    def _column(self, field: str) -> str:
        try:
            return self._columns[field]
        except KeyError:
            raise ValueError(f"Field not filterable: {field}") from None

    def _bind(self, field: str, value: Any) -> str:
        name = f"f_{field}_{len(self._params)}"
        self._params[name] = value
        return f":{name}"

    def eq(self, field: str, value: Any | None) -> "FilterSet":
        """Equality predicate; None means "no filter" and is skipped."""
        if value is not None:
            self._clauses.append(f"{self._column(field)} = {self._bind(field, value)}")
        return self

    def gte(self, field: str, value: Any | None) -> "FilterSet":
        if value is not None:
            self._clauses.append(f"{self._column(field)} >= {self._bind(field, value)}")
        return self

    def lte(self, field: str, value: Any | None) -> "FilterSet":
        if value is not None:
            self._clauses.append(f"{self._column(field)} <= {self._bind(field, value)}")
        return self

    def lt(self, field: str, value: Any | None) -> "FilterSet":
        if value is not None:
            self._clauses.append(f"{self._column(field)} < {self._bind(field, value)}")
        return self

    def in_(self, field: str, values: list[Any] | tuple[Any, ...] | None) -> "FilterSet":
        if values:
            names = [self._bind(field, v) for v in values]
            self._clauses.append(f"{self._column(field)} IN ({', '.join(names)})")
        return self

    def compile(self) -> tuple[str, dict[str, Any]]:
        """Return (where_sql, params). where_sql is "TRUE" when empty."""
        where = " AND ".join(self._clauses) if self._clauses else "TRUE"
        return where, dict(self._params)
