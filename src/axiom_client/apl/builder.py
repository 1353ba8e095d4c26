# src/axiom_client/apl/builder.py
"""Fluent builder for APL query strings.

A Query starts from a dataset and collects stages. Each stage method returns
the stage it created; calling the same method on that stage extends it
instead of adding a new one, and any other method falls through to the
query:

    >>> q = (
    ...     Query("http-logs")
    ...     .set_strict_types()
    ...     .where_eq("status", "500")
    ...     .and_gt_eq("duration", "1s")
    ...     .project("method", "path")
    ...     .project("status")
    ...     .take(10)
    ... )
    >>> print(q.build())
    set stricttypes;
    ['http-logs']
    | where status == 500 and duration >= 1s
    | project method, path, status
    | take 10

Expressions are inserted verbatim; quoting string literals is up to the
caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class FilterOp(StrEnum):
    AND = "and"
    OR = "or"

    EQ = "=="
    NEQ = "!="
    GT = ">"
    GT_EQ = ">="
    LT = "<"
    LT_EQ = "<="


class SortOrder(StrEnum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True, slots=True)
class Dataset:
    """Dataset reference; bracket-quoted when the name has ``-``, ``_`` or ``.``."""

    name: str

    def __str__(self) -> str:
        if any(c in self.name for c in "-_."):
            return f"['{self.name}']"
        return self.name


@dataclass(frozen=True, slots=True)
class Column:
    """Column reference; bracket-quoted when the name is a dotted path."""

    name: str

    def __str__(self) -> str:
        if "." in self.name:
            return f"['{self.name}']"
        return self.name


ColumnLike = Column | str


def _column(col: ColumnLike) -> Column:
    return col if isinstance(col, Column) else Column(col)


class Stage:
    """One pipeline stage (or set option) of a Query.

    Attribute lookups the stage does not define fall through to the query, so
    calls can be chained across stages.
    """

    def __init__(self, query: Query) -> None:
        self._query = query

    @property
    def query(self) -> Query:
        return self._query

    def render(self) -> str:
        raise NotImplementedError

    def __getattr__(self, name: str) -> Any:
        if name == "_query":
            raise AttributeError(name)
        return getattr(self._query, name)

    def __str__(self) -> str:
        return self._query.build()


class Set(Stage):
    def __init__(self, query: Query, key: str, value: str = "") -> None:
        super().__init__(query)
        self._key = key
        self._value = value

    def render(self) -> str:
        if self._value:
            return f"set {self._key}={self._value};"
        return f"set {self._key};"


class _ColumnList(Stage):
    keyword = ""

    def __init__(self, query: Query, cols: tuple[ColumnLike, ...]) -> None:
        if not cols:
            raise ValueError(f"{self.keyword} needs at least one column")
        super().__init__(query)
        self._cols = [_column(c) for c in cols]

    def _extend(self, cols: tuple[ColumnLike, ...]) -> Any:
        self._cols.extend(_column(c) for c in cols)
        return self

    def render(self) -> str:
        return f"{self.keyword} {', '.join(str(c) for c in self._cols)}"


class Project(_ColumnList):
    keyword = "project"

    def project(self, *cols: ColumnLike) -> Project:
        return self._extend(cols)


class ProjectAway(_ColumnList):
    keyword = "project-away"

    def project_away(self, *cols: ColumnLike) -> ProjectAway:
        return self._extend(cols)


class ProjectKeep(_ColumnList):
    keyword = "project-keep"

    def project_keep(self, *cols: ColumnLike) -> ProjectKeep:
        return self._extend(cols)


class Distinct(_ColumnList):
    keyword = "distinct"

    def distinct(self, *cols: ColumnLike) -> Distinct:
        return self._extend(cols)


class Extend(Stage):
    def __init__(self, query: Query, alias: str, expr: str) -> None:
        super().__init__(query)
        self._fields: list[tuple[str, str]] = [(alias, expr)]

    def extend(self, alias: str, expr: str) -> Extend:
        self._fields.append((alias, expr))
        return self

    def render(self) -> str:
        return "extend " + ", ".join(f"{alias} = {expr}" for alias, expr in self._fields)


class Order(Stage):
    def __init__(self, query: Query, col: ColumnLike, order: SortOrder) -> None:
        super().__init__(query)
        self._keys: list[tuple[Column, SortOrder]] = [(_column(col), order)]

    def order(self, col: ColumnLike, order: SortOrder) -> Order:
        self._keys.append((_column(col), order))
        return self

    def order_asc(self, col: ColumnLike) -> Order:
        return self.order(col, SortOrder.ASC)

    def order_desc(self, col: ColumnLike) -> Order:
        return self.order(col, SortOrder.DESC)

    def render(self) -> str:
        return "order by " + ", ".join(f"{col} {order}" for col, order in self._keys)


class Top(Stage):
    def __init__(self, query: Query, n: int, expr: str) -> None:
        super().__init__(query)
        self._n = n
        self._expr = expr

    def render(self) -> str:
        return f"top {self._n} by {self._expr}"


class Limit(Stage):
    """``limit N`` or its alias ``take N``."""

    def __init__(self, query: Query, n: int, keyword: str = "limit") -> None:
        super().__init__(query)
        self._n = n
        self._keyword = keyword

    def render(self) -> str:
        return f"{self._keyword} {self._n}"


class Count(Stage):
    def render(self) -> str:
        return "count"


class Where(Stage):
    """Filter stage.

    Conditions combine left to right: each and_*/or_* call turns the node it
    is called on into a combination of its old condition and the new one,
    and returns the new one. The result is rendered without parentheses.
    """

    def __init__(
        self,
        query: Query,
        col: ColumnLike | None,
        op: FilterOp,
        expr: str,
        *,
        root: bool = False,
    ) -> None:
        super().__init__(query)
        self._col = _column(col) if col is not None else None
        self._op = op
        self._expr = expr
        self._children: list[Where] = []
        self._root = root

    def _combine(self, combinator: FilterOp, col: ColumnLike, op: FilterOp, expr: str) -> Where:
        lhs = Where(self._query, self._col, self._op, self._expr)
        lhs._children = self._children
        rhs = Where(self._query, col, op, expr)

        self._col = None
        self._op = combinator
        self._expr = ""
        self._children = [lhs, rhs]
        return rhs

    def and_(self, col: ColumnLike, op: FilterOp, expr: str) -> Where:
        return self._combine(FilterOp.AND, col, op, expr)

    def and_eq(self, col: ColumnLike, expr: str) -> Where:
        return self.and_(col, FilterOp.EQ, expr)

    def and_neq(self, col: ColumnLike, expr: str) -> Where:
        return self.and_(col, FilterOp.NEQ, expr)

    def and_gt(self, col: ColumnLike, expr: str) -> Where:
        return self.and_(col, FilterOp.GT, expr)

    def and_gt_eq(self, col: ColumnLike, expr: str) -> Where:
        return self.and_(col, FilterOp.GT_EQ, expr)

    def and_lt(self, col: ColumnLike, expr: str) -> Where:
        return self.and_(col, FilterOp.LT, expr)

    def and_lt_eq(self, col: ColumnLike, expr: str) -> Where:
        return self.and_(col, FilterOp.LT_EQ, expr)

    def or_(self, col: ColumnLike, op: FilterOp, expr: str) -> Where:
        return self._combine(FilterOp.OR, col, op, expr)

    def or_eq(self, col: ColumnLike, expr: str) -> Where:
        return self.or_(col, FilterOp.EQ, expr)

    def or_neq(self, col: ColumnLike, expr: str) -> Where:
        return self.or_(col, FilterOp.NEQ, expr)

    def or_gt(self, col: ColumnLike, expr: str) -> Where:
        return self.or_(col, FilterOp.GT, expr)

    def or_gt_eq(self, col: ColumnLike, expr: str) -> Where:
        return self.or_(col, FilterOp.GT_EQ, expr)

    def or_lt(self, col: ColumnLike, expr: str) -> Where:
        return self.or_(col, FilterOp.LT, expr)

    def or_lt_eq(self, col: ColumnLike, expr: str) -> Where:
        return self.or_(col, FilterOp.LT_EQ, expr)

    def render(self) -> str:
        prefix = "where " if self._root else ""
        if self._op in (FilterOp.AND, FilterOp.OR):
            lhs, rhs = self._children
            return f"{prefix}{lhs.render()} {self._op} {rhs.render()}"
        return f"{prefix}{self._col} {self._op} {self._expr}"


class Query:
    """APL query under construction for one dataset."""

    def __init__(self, dataset: str | Dataset) -> None:
        self._dataset = dataset if isinstance(dataset, Dataset) else Dataset(dataset)
        self._options: list[Stage] = []
        self._stages: list[Stage] = []

    def build(self) -> str:
        """Render set options, the dataset, then one ``| stage`` line per stage."""
        lines = [option.render() for option in self._options]
        lines.append(str(self._dataset))
        text = "\n".join(lines)
        for stage in self._stages:
            text += f"\n| {stage.render()}"
        return text

    def __str__(self) -> str:
        return self.build()

    def _add(self, stage: Any) -> Any:
        self._stages.append(stage)
        return stage

    # Options

    def set(self, key: str, value: str = "") -> Set:
        option = Set(self, key, value)
        self._options.append(option)
        return option

    def set_strict_types(self) -> Set:
        return self.set("stricttypes")

    # Stages

    def count(self) -> Count:
        return self._add(Count(self))

    def distinct(self, *cols: ColumnLike) -> Distinct:
        return self._add(Distinct(self, cols))

    def extend(self, alias: str, expr: str) -> Extend:
        return self._add(Extend(self, alias, expr))

    def limit(self, n: int) -> Limit:
        return self._add(Limit(self, n))

    def take(self, n: int) -> Limit:
        return self._add(Limit(self, n, keyword="take"))

    def order(self, col: ColumnLike, order: SortOrder) -> Order:
        return self._add(Order(self, col, order))

    def order_asc(self, col: ColumnLike) -> Order:
        return self.order(col, SortOrder.ASC)

    def order_desc(self, col: ColumnLike) -> Order:
        return self.order(col, SortOrder.DESC)

    def project(self, *cols: ColumnLike) -> Project:
        return self._add(Project(self, cols))

    def project_away(self, *cols: ColumnLike) -> ProjectAway:
        return self._add(ProjectAway(self, cols))

    def project_keep(self, *cols: ColumnLike) -> ProjectKeep:
        return self._add(ProjectKeep(self, cols))

    def top(self, n: int, expr: str) -> Top:
        return self._add(Top(self, n, expr))

    def where(self, col: ColumnLike, op: FilterOp, expr: str) -> Where:
        return self._add(Where(self, col, op, expr, root=True))

    def where_eq(self, col: ColumnLike, expr: str) -> Where:
        return self.where(col, FilterOp.EQ, expr)

    def where_neq(self, col: ColumnLike, expr: str) -> Where:
        return self.where(col, FilterOp.NEQ, expr)

    def where_gt(self, col: ColumnLike, expr: str) -> Where:
        return self.where(col, FilterOp.GT, expr)

    def where_gt_eq(self, col: ColumnLike, expr: str) -> Where:
        return self.where(col, FilterOp.GT_EQ, expr)

    def where_lt(self, col: ColumnLike, expr: str) -> Where:
        return self.where(col, FilterOp.LT, expr)

    def where_lt_eq(self, col: ColumnLike, expr: str) -> Where:
        return self.where(col, FilterOp.LT_EQ, expr)
