"""Composable SQL expression tree rendered to DuckDB SQL with named parameters."""
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple


class RenderContext:
    """Collects parameter values while a tree is rendered."""

    def __init__(self):
        self.params: Dict[str, Any] = {}

    def bind(self, name: str, value: Any) -> str:
        if name in self.params and self.params[name] != value:
            raise ValueError(f"Parameter {name!r} bound twice with different values")
        self.params[name] = value
        return f"${name}"


class Node:
    """Base class of all SQL tree nodes."""

    def render(self, ctx: RenderContext) -> str:
        raise NotImplementedError


class Raw(Node):
    """Literal SQL text without parameters."""

    def __init__(self, sql: str):
        self.sql = sql

    def render(self, ctx: RenderContext) -> str:
        return self.sql


class Param(Node):
    """A bound parameter, optionally cast so DuckDB can infer its type."""

    def __init__(self, name: str, value: Any, cast: Optional[str] = None):
        self.name = name
        self.value = value
        self.cast = cast

    def render(self, ctx: RenderContext) -> str:
        placeholder = ctx.bind(self.name, self.value)
        if self.cast:
            return f"CAST({placeholder} AS {self.cast})"
        return placeholder


class Expr(Node):
    """SQL template whose ``{placeholders}`` are filled with rendered child nodes."""

    def __init__(self, template: str, **children: Node):
        self.template = template
        self.children = children

    def render(self, ctx: RenderContext) -> str:
        rendered = {name: child.render(ctx) for name, child in self.children.items()}
        return self.template.format(**rendered)


class AllOf(Node):
    """Conjunction; an empty conjunction is TRUE."""

    def __init__(self, *children: Node):
        self.children = [child for child in children if child is not None]

    def render(self, ctx: RenderContext) -> str:
        if not self.children:
            return "TRUE"
        return "(" + " AND ".join(child.render(ctx) for child in self.children) + ")"


class AnyOf(Node):
    """Disjunction; an empty disjunction is FALSE."""

    def __init__(self, *children: Node):
        self.children = [child for child in children if child is not None]

    def render(self, ctx: RenderContext) -> str:
        if not self.children:
            return "FALSE"
        return "(" + " OR ".join(child.render(ctx) for child in self.children) + ")"


class In(Node):
    """``column IN (...)`` with one parameter per value; no values matches nothing."""

    def __init__(self, column: str, name: str, values: Sequence[Any], cast: Optional[str] = None):
        self.column = column
        self.name = name
        self.values = list(values)
        self.cast = cast

    def render(self, ctx: RenderContext) -> str:
        if not self.values:
            return "FALSE"
        placeholders = [
            Param(f"{self.name}_{index}", value, self.cast).render(ctx)
            for index, value in enumerate(self.values)
        ]
        return f"{self.column} IN ({', '.join(placeholders)})"


class Compare(Node):
    """Binary comparison between two nodes."""

    def __init__(self, left: Node, operator: str, right: Node):
        self.left = left
        self.operator = operator
        self.right = right

    def render(self, ctx: RenderContext) -> str:
        return f"{self.left.render(ctx)} {self.operator} {self.right.render(ctx)}"


class IsNull(Node):
    def __init__(self, column: str, negate: bool = False):
        self.column = column
        self.negate = negate

    def render(self, ctx: RenderContext) -> str:
        return f"{self.column} IS {'NOT ' if self.negate else ''}NULL"


class Case(Node):
    """``CASE WHEN ... THEN ... ELSE ... END`` with literal results."""

    def __init__(self, whens: List[Tuple[Node, Any]], default: Any, alias: Optional[str] = None):
        self.whens = whens
        self.default = default
        self.alias = alias

    def render(self, ctx: RenderContext) -> str:
        parts = [f"WHEN {condition.render(ctx)} THEN {result}" for condition, result in self.whens]
        sql = f"CASE {' '.join(parts)} ELSE {self.default} END"
        return f"{sql} AS {self.alias}" if self.alias else sql


class Aliased(Node):
    def __init__(self, node: Node, alias: str):
        self.node = node
        self.alias = alias

    def render(self, ctx: RenderContext) -> str:
        return f"{self.node.render(ctx)} AS {self.alias}"


@dataclass
class SelectQuery(Node):
    """
    A SELECT statement assembled from nodes.

    Data and count queries are derived from the same instance, so they share
    CTEs, source, joins and the WHERE tree and differ only in projection,
    ordering and limits.
    """
    projection: List[Node]
    source: Node
    joins: List[Node] = field(default_factory=list)
    where: Node = field(default_factory=AllOf)
    ctes: List[Tuple[str, Node]] = field(default_factory=list)
    order_by: List[str] = field(default_factory=list)
    limit: Optional[int] = None
    offset: Optional[int] = None

    def render(self, ctx: RenderContext) -> str:
        lines = []
        if self.ctes:
            rendered = [f"{name} AS (\n{node.render(ctx)}\n)" for name, node in self.ctes]
            lines.append("WITH " + ",\n".join(rendered))
        lines.append("SELECT " + ",\n       ".join(column.render(ctx) for column in self.projection))
        lines.append("FROM " + self.source.render(ctx))
        lines.extend(join.render(ctx) for join in self.joins)
        lines.append("WHERE " + self.where.render(ctx))
        if self.order_by:
            lines.append("ORDER BY " + ", ".join(self.order_by))
        if self.limit is not None:
            lines.append(f"LIMIT {int(self.limit)}")
            if self.offset:
                lines.append(f"OFFSET {int(self.offset)}")
        return "\n".join(lines)

    def to_sql(self) -> Tuple[str, Dict[str, Any]]:
        """Render the statement and return it with its parameter values."""
        ctx = RenderContext()
        sql = self.render(ctx)
        return sql, ctx.params

    def as_count(self, column: str = "l.id") -> "SelectQuery":
        """Derive the matching count query: same predicate, no ordering or limit."""
        return replace(
            self,
            projection=[Raw(f"COUNT(DISTINCT {column}) AS total")],
            order_by=[],
            limit=None,
            offset=None,
        )


class Subquery(Node):
    def __init__(self, query: SelectQuery, alias: str):
        self.query = query
        self.alias = alias

    def render(self, ctx: RenderContext) -> str:
        return f"(\n{self.query.render(ctx)}\n) {self.alias}"
