"""
Catalog snapshot - the universe of valid names for refinement.

A snapshot is immutable and versioned. The version is a content hash unless
supplied explicitly, so two snapshots with identical metadata share cached
search results and any change invalidates them.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple


@dataclass(frozen=True)
class ColumnInfo:
    """Column metadata (ordinal = declaration order within its table)"""
    name: str
    data_type: str
    ordinal: int = 0


@dataclass(frozen=True)
class TableInfo:
    """Table metadata with columns in declaration order"""
    name: str
    columns: Tuple[ColumnInfo, ...]
    primary_key: Tuple[str, ...] = ()

    def column(self, name: str) -> Optional[ColumnInfo]:
        lowered = name.lower()
        for col in self.columns:
            if col.name.lower() == lowered:
                return col
        return None

    def has_column(self, name: str) -> bool:
        return self.column(name) is not None


@dataclass(frozen=True)
class ForeignKey:
    """Foreign-key edge from_table.from_column -> to_table.to_column"""
    from_table: str
    from_column: str
    to_table: str
    to_column: str


@dataclass(frozen=True)
class FunctionSignature:
    """Callable function signature"""
    name: str
    arg_types: Tuple[str, ...]
    return_type: str = ""

    @property
    def arity(self) -> int:
        return len(self.arg_types)


@dataclass(frozen=True)
class CatalogSnapshot:
    """
    Immutable, versioned view of database metadata.

    Attributes:
        tables: Tables in declaration order
        foreign_keys: Foreign-key relationships
        functions: Function signatures (built-ins plus user-defined)
        values: Sampled distinct string values keyed by (table, column), lower-cased
        version: Snapshot version; computed from content when empty
    """
    tables: Tuple[TableInfo, ...]
    foreign_keys: Tuple[ForeignKey, ...] = ()
    functions: Tuple[FunctionSignature, ...] = ()
    values: Mapping[Tuple[str, str], Tuple[str, ...]] = field(default_factory=dict)
    version: str = ""

    def __post_init__(self):
        object.__setattr__(self, "tables", tuple(self.tables))
        object.__setattr__(self, "foreign_keys", tuple(self.foreign_keys))
        object.__setattr__(self, "functions", tuple(self.functions))
        object.__setattr__(
            self,
            "values",
            {(t.lower(), c.lower()): tuple(v) for (t, c), v in dict(self.values).items()},
        )
        object.__setattr__(self, "_tables_by_name", {t.name.lower(): t for t in self.tables})
        if not self.version:
            object.__setattr__(self, "version", self._content_hash())

    # ------------------------------------------------------------------
    # Tables and columns
    # ------------------------------------------------------------------

    def table(self, name: str) -> Optional[TableInfo]:
        return self._tables_by_name.get(name.lower())

    def has_table(self, name: str) -> bool:
        return name.lower() in self._tables_by_name

    def table_order(self, name: str) -> int:
        """Declaration index of a table (tie-break for ranking)."""
        for index, table in enumerate(self.tables):
            if table.name.lower() == name.lower():
                return index
        return len(self.tables)

    def tables_with_column(self, column: str) -> List[TableInfo]:
        """Tables exposing a column of this name, in declaration order."""
        return [table for table in self.tables if table.has_column(column)]

    def column_type(self, table: str, column: str) -> Optional[str]:
        info = self.table(table)
        if info is None:
            return None
        col = info.column(column)
        return col.data_type if col else None

    # ------------------------------------------------------------------
    # Functions
    # ------------------------------------------------------------------

    def functions_named(self, name: str) -> List[FunctionSignature]:
        lowered = name.lower()
        return [fn for fn in self.functions if fn.name.lower() == lowered]

    def has_function(self, name: str) -> bool:
        return bool(self.functions_named(name))

    def function_names_with_arity(self, arity: int) -> List[str]:
        """Distinct function names having a signature of this arity, in declaration order."""
        names: List[str] = []
        for fn in self.functions:
            if fn.arity == arity and fn.name.lower() not in names:
                names.append(fn.name.lower())
        return names

    # ------------------------------------------------------------------
    # Relationships and values
    # ------------------------------------------------------------------

    def foreign_keys_between(self, table_a: str, table_b: str) -> List[ForeignKey]:
        """Foreign keys linking two tables in either direction."""
        a, b = table_a.lower(), table_b.lower()
        return [
            fk for fk in self.foreign_keys
            if {fk.from_table.lower(), fk.to_table.lower()} == {a, b}
        ]

    def sampled_values(self, table: str, column: str, limit: Optional[int] = None) -> Tuple[str, ...]:
        values = self.values.get((table.lower(), column.lower()), ())
        if limit is not None:
            return values[:limit]
        return values

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """JSON-compatible representation (loadable with from_dict)."""
        return {
            "version": self.version,
            "tables": {
                table.name: {
                    "columns": [{"name": c.name, "type": c.data_type} for c in table.columns],
                    "primary_key": list(table.primary_key),
                }
                for table in self.tables
            },
            "relationships": [
                {
                    "from_table": fk.from_table,
                    "from_column": fk.from_column,
                    "to_table": fk.to_table,
                    "to_column": fk.to_column,
                }
                for fk in self.foreign_keys
            ],
            "functions": [
                {"name": fn.name, "arg_types": list(fn.arg_types), "return_type": fn.return_type}
                for fn in self.functions
            ],
            "values": {f"{t}.{c}": list(v) for (t, c), v in self.values.items()},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CatalogSnapshot":
        """
        Build a snapshot from the to_dict() layout.

        Columns may be given as {"name", "type"} objects or as a
        {name: type} mapping.
        """
        tables = []
        for name, spec in data.get("tables", {}).items():
            raw_columns = spec.get("columns", [])
            if isinstance(raw_columns, Mapping):
                raw_columns = [{"name": k, "type": v} for k, v in raw_columns.items()]
            columns = tuple(
                ColumnInfo(name=c["name"], data_type=c.get("type", ""), ordinal=i)
                for i, c in enumerate(raw_columns)
            )
            tables.append(TableInfo(name, columns, tuple(spec.get("primary_key", ()))))

        foreign_keys = [
            ForeignKey(r["from_table"], r["from_column"], r["to_table"], r["to_column"])
            for r in data.get("relationships", [])
        ]
        functions = [
            FunctionSignature(f["name"], tuple(f.get("arg_types", ())), f.get("return_type", ""))
            for f in data.get("functions", [])
        ]
        values = {}
        for key, items in data.get("values", {}).items():
            table, _, column = key.partition(".")
            values[(table, column)] = tuple(items)

        return cls(
            tables=tuple(tables),
            foreign_keys=tuple(foreign_keys),
            functions=tuple(functions),
            values=values,
            version=data.get("version", ""),
        )

    def _content_hash(self) -> str:
        payload = self.to_dict()
        payload.pop("version")
        digest = hashlib.sha256(json.dumps(payload, sort_keys=True).encode()).hexdigest()
        return digest[:16]


def build_functions(signatures: Iterable[Sequence[Any]]) -> Tuple[FunctionSignature, ...]:
    """Turn (name, arg_types, return_type) tuples into FunctionSignature objects."""
    return tuple(FunctionSignature(name, tuple(args), ret) for name, args, ret in signatures)
