"""Dedup-aware writer that adapts its INSERT to the destination table.

The writer is prepared once per run: it introspects the destination's columns
and unique indexes, validates the field mapping against them and decides on a
conflict strategy. Each ``write`` then builds a single INSERT statement for
the draft:

* signature key ``(source_id, content_hash)`` -> ``ON CONFLICT DO NOTHING``
* link-like unique column (url, link, ...) -> ``ON CONFLICT DO UPDATE`` of the
  non-key columns when ``use_upsert_on_conflict`` is set
* no usable unique index -> plain insert, guarded by ``NOT EXISTS`` on the
  content hash when that column is mapped
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import pendulum
import psycopg
from psycopg import Connection, sql
from pydantic import BaseModel, Field

from ..config.mapping import LINK_KEY_COLUMNS, FieldMapping
from ..errors import MappingError, SchemaError
from ..ingestion.models import CanonicalItemDraft
from ..models import Source

logger = logging.getLogger(__name__)


class ColumnInfo(BaseModel):
    """One destination column."""

    name: str
    nullable: bool = True
    has_default: bool = False

    @property
    def required(self) -> bool:
        """NOT NULL without a default: an insert must supply it."""
        return not self.nullable and not self.has_default


class TableSchema(BaseModel):
    """Introspected shape of the destination table."""

    schema_name: str = "public"
    table: str
    columns: Dict[str, ColumnInfo] = Field(default_factory=dict)
    unique_keys: List[Tuple[str, ...]] = Field(default_factory=list)

    def has_unique(self, columns: Tuple[str, ...]) -> bool:
        return any(set(key) == set(columns) for key in self.unique_keys)


class WriteOutcome(str, Enum):
    INSERTED = "inserted"
    DUPLICATE = "duplicate"
    REJECTED = "rejected"
    FAILED = "failed"


class WriteResult(BaseModel):
    """Outcome of one write."""

    outcome: WriteOutcome
    reason: Optional[str] = None

    @property
    def written(self) -> bool:
        """True only when a new row was created."""
        return self.outcome == WriteOutcome.INSERTED


class WritePlan(BaseModel):
    """Validated column and conflict strategy for a run."""

    field_columns: Dict[str, List[str]]
    conflict_key: Optional[Tuple[str, ...]] = None
    upsert: bool = False
    guard_column: Optional[str] = None
    guard_scope_column: Optional[str] = None
    required: List[str] = Field(default_factory=list)


def split_table_name(table: str) -> Tuple[str, str]:
    if "." in table:
        schema_name, name = table.split(".", 1)
        return schema_name, name
    return "public", table


def introspect_table(conn: Connection, table: str) -> TableSchema:
    """Read the destination's columns and unique indexes."""
    schema_name, name = split_table_name(table)

    with conn.cursor() as cur:
        cur.execute(
            """
            SELECT column_name, is_nullable, column_default, is_identity, is_generated
            FROM information_schema.columns
            WHERE table_schema = %s AND table_name = %s
            ORDER BY ordinal_position
            """,
            (schema_name, name),
        )
        column_rows = cur.fetchall()

        if not column_rows:
            raise SchemaError(f"Table not found or no columns: {table}")

        columns = {}
        for row in column_rows:
            columns[row["column_name"]] = ColumnInfo(
                name=row["column_name"],
                nullable=row["is_nullable"] == "YES",
                has_default=(
                    row["column_default"] is not None
                    or row["is_identity"] == "YES"
                    or row["is_generated"] not in (None, "NEVER")
                ),
            )

        # Partial and expression indexes cannot serve as ON CONFLICT targets
        cur.execute(
            """
            SELECT array_agg(a.attname::text ORDER BY k.ord) AS columns
            FROM pg_index i
            JOIN LATERAL unnest(i.indkey) WITH ORDINALITY AS k(attnum, ord) ON TRUE
            JOIN pg_attribute a ON a.attrelid = i.indrelid AND a.attnum = k.attnum
            WHERE i.indrelid = (quote_ident(%s) || '.' || quote_ident(%s))::regclass
              AND i.indisunique
              AND i.indpred IS NULL
              AND i.indexprs IS NULL
            GROUP BY i.indexrelid
            """,
            (schema_name, name),
        )
        unique_keys = [tuple(row["columns"]) for row in cur.fetchall()]

    return TableSchema(schema_name=schema_name, table=name, columns=columns, unique_keys=unique_keys)


def build_plan(mapping: FieldMapping, schema: TableSchema) -> WritePlan:
    """Check the mapping against the table and choose a conflict strategy."""
    field_columns: Dict[str, List[str]] = {}
    missing = []

    for field, cols in mapping.active_columns().items():
        present = [c for c in cols if c in schema.columns]
        missing.extend(f"{field}->{c}" for c in cols if c not in schema.columns)
        if present:
            field_columns[field] = present

    if missing:
        message = f"Mapped columns missing from {schema.table}: {', '.join(missing)}"
        if mapping.flags.strict:
            raise MappingError(message)
        logger.warning("%s (dropped, strict mode off)", message)

    if not field_columns:
        raise MappingError(f"No mapped column exists on {schema.table}")

    mapped = {c for cols in field_columns.values() for c in cols}
    required = [name for name, info in schema.columns.items() if info.required]
    unmapped_required = [c for c in required if c not in mapped]
    if unmapped_required:
        message = f"Required columns of {schema.table} are not mapped: {', '.join(unmapped_required)}"
        if mapping.flags.strict:
            raise MappingError(message)
        logger.warning("%s (rows will be rejected)", message)

    hash_col = (field_columns.get("content_hash") or [None])[0]
    source_col = (field_columns.get("source_id") or [None])[0]

    conflict_key: Optional[Tuple[str, ...]] = None
    upsert = False

    if mapping.unique_key:
        key = tuple(mapping.unique_key)
        if not set(key) <= mapped:
            raise MappingError(f"unique_key {key} is not fully mapped")
        if not schema.has_unique(key):
            raise MappingError(f"unique_key {key} has no unique index on {schema.table}")
        conflict_key = key
        upsert = mapping.flags.use_upsert_on_conflict and hash_col not in key
    else:
        if hash_col:
            signature_cols = {hash_col} | ({source_col} if source_col else set())
            for key in schema.unique_keys:
                if hash_col in key and set(key) <= signature_cols:
                    conflict_key = key
                    break
        if conflict_key is None:
            for col in LINK_KEY_COLUMNS:
                if col in mapped and schema.has_unique((col,)):
                    conflict_key = (col,)
                    upsert = mapping.flags.use_upsert_on_conflict
                    break

    guard_column = hash_col if conflict_key is None else None
    return WritePlan(
        field_columns=field_columns,
        conflict_key=conflict_key,
        upsert=upsert,
        guard_column=guard_column,
        guard_scope_column=source_col if guard_column else None,
        required=required,
    )


def canonical_values(draft: CanonicalItemDraft, source: Source) -> Dict[str, Any]:
    """Values for every canonical field of a draft."""
    return {
        "source_id": source.id,
        "title": draft.title,
        "link": draft.link,
        "published_at": draft.published_at,
        "summary": draft.summary,
        "content_hash": draft.signature,
        "state": source.state,
        "county": source.county,
        "region": source.region,
        "provider": draft.provider,
        "query": draft.query,
        "domain": draft.domain,
        "image": draft.image,
        "fetched_at": pendulum.now("UTC"),
    }


class AdaptiveWriter:
    """Persist canonical drafts exactly once per content signature."""

    def __init__(self, mapping: FieldMapping) -> None:
        self.mapping = mapping
        self.schema: Optional[TableSchema] = None
        self.plan: Optional[WritePlan] = None

    def prepare(self, conn: Connection, schema: Optional[TableSchema] = None) -> WritePlan:
        """Introspect once and validate; fatal errors propagate."""
        if self.plan is not None:
            return self.plan

        self.schema = schema or introspect_table(conn, self.mapping.table)
        conn.commit()
        self.plan = build_plan(self.mapping, self.schema)

        logger.info(
            "[DB] %s: %d columns, %d mapped, conflict key=%s%s",
            self.mapping.table,
            len(self.schema.columns),
            sum(len(c) for c in self.plan.field_columns.values()),
            ",".join(self.plan.conflict_key) if self.plan.conflict_key else "NONE (insert-only)",
            " (upsert)" if self.plan.upsert else "",
        )
        return self.plan

    def build_row(self, draft: CanonicalItemDraft, source: Source) -> Dict[str, Any]:
        """Destination column -> value; unknown values are left to column defaults."""
        if self.plan is None:
            raise RuntimeError("AdaptiveWriter.prepare() must run before writing")

        values = canonical_values(draft, source)
        row: Dict[str, Any] = {}
        for field, cols in self.plan.field_columns.items():
            value = values.get(field)
            if value is None or (value == "" and field in ("title", "link")):
                continue
            for col in cols:
                row.setdefault(col, value)
        return row

    def check_row(self, row: Dict[str, Any]) -> Optional[str]:
        """Reason to reject the row locally, or None."""
        if not row:
            return "no_matching_columns"
        for col in self.plan.required:
            if row.get(col) is None:
                return f"missing_required:{col}"
        for col in self.plan.conflict_key or ():
            if row.get(col) is None:
                return f"missing_conflict_value:{col}"
        return None

    def build_statement(self, row: Dict[str, Any]) -> Tuple[sql.Composed, List[Any]]:
        """INSERT for one row, returning an ``inserted`` flag when a row was touched."""
        cols = list(row)
        params = [row[c] for c in cols]
        table = sql.Identifier(self.schema.schema_name, self.schema.table)
        col_list = sql.SQL(", ").join(sql.Identifier(c) for c in cols)
        placeholders = sql.SQL(", ").join(sql.Placeholder() * len(cols))
        plan = self.plan

        if plan.conflict_key:
            key = sql.SQL(", ").join(sql.Identifier(c) for c in plan.conflict_key)
            update_cols = [c for c in cols if c not in plan.conflict_key]
            if plan.upsert and update_cols:
                sets = sql.SQL(", ").join(
                    sql.SQL("{0} = EXCLUDED.{0}").format(sql.Identifier(c)) for c in update_cols
                )
                query = sql.SQL(
                    "INSERT INTO {table} ({cols}) VALUES ({vals}) "
                    "ON CONFLICT ({key}) DO UPDATE SET {sets} "
                    "RETURNING (xmax = 0) AS inserted"
                ).format(table=table, cols=col_list, vals=placeholders, key=key, sets=sets)
            else:
                query = sql.SQL(
                    "INSERT INTO {table} ({cols}) VALUES ({vals}) "
                    "ON CONFLICT ({key}) DO NOTHING "
                    "RETURNING TRUE AS inserted"
                ).format(table=table, cols=col_list, vals=placeholders, key=key)
            return query, params

        if plan.guard_column and row.get(plan.guard_column) is not None:
            conditions = [sql.SQL("{} = %s").format(sql.Identifier(plan.guard_column))]
            params.append(row[plan.guard_column])
            if plan.guard_scope_column and row.get(plan.guard_scope_column) is not None:
                conditions.append(sql.SQL("{} = %s").format(sql.Identifier(plan.guard_scope_column)))
                params.append(row[plan.guard_scope_column])
            query = sql.SQL(
                "INSERT INTO {table} ({cols}) SELECT {vals} "
                "WHERE NOT EXISTS (SELECT 1 FROM {table} WHERE {cond}) "
                "RETURNING TRUE AS inserted"
            ).format(
                table=table,
                cols=col_list,
                vals=placeholders,
                cond=sql.SQL(" AND ").join(conditions),
            )
            return query, params

        query = sql.SQL("INSERT INTO {table} ({cols}) VALUES ({vals}) RETURNING TRUE AS inserted").format(
            table=table, cols=col_list, vals=placeholders
        )
        return query, params

    def write(self, conn: Connection, draft: CanonicalItemDraft, source: Source) -> WriteResult:
        """Persist one draft in its own transaction; row-level failures are returned, not raised."""
        row = self.build_row(draft, source)
        reason = self.check_row(row)
        if reason:
            logger.debug("[%s] rejected %s: %s", source.region, draft.link or draft.title, reason)
            return WriteResult(outcome=WriteOutcome.REJECTED, reason=reason)

        query, params = self.build_statement(row)
        try:
            with conn.transaction():
                with conn.cursor() as cur:
                    cur.execute(query, params)
                    result = cur.fetchone()
        except psycopg.Error as e:
            message = str(e).strip().splitlines()[0] if str(e).strip() else type(e).__name__
            logger.error("[%s] DB_ERROR url=%s msg=%s", source.region, draft.link, message)
            return WriteResult(outcome=WriteOutcome.FAILED, reason=message)
        conn.commit()

        if result and result["inserted"]:
            return WriteResult(outcome=WriteOutcome.INSERTED)
        return WriteResult(outcome=WriteOutcome.DUPLICATE)

    def write_many(
        self,
        conn: Connection,
        drafts: List[CanonicalItemDraft],
        source: Source,
    ) -> Dict[str, int]:
        """Write a batch for one source and count outcomes."""
        stats = {outcome.value: 0 for outcome in WriteOutcome}
        for draft in drafts:
            result = self.write(conn, draft, source)
            stats[result.outcome.value] += 1
        return stats
