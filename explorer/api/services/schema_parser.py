from typing import Dict, List, Optional
import structlog
import yaml
from pydantic import ValidationError
from rapidfuzz import process as fuzz_process, fuzz
from .models import DatabaseSchema, RelationEdge, SchemaResponse, TableDef

logger = structlog.get_logger()

FUZZY_THRESHOLD = 75


def parse_database_yaml(content: str) -> Optional[DatabaseSchema]:
    try:
        parsed = yaml.safe_load(content)
    except yaml.YAMLError as e:
        logger.warning("schema.parse_failed", error=str(e))
        return None
    if not isinstance(parsed, dict) or not parsed.get("database") or not parsed.get("tables"):
        logger.warning("schema.parse_failed", error="document needs 'database' and 'tables' sections")
        return None
    try:
        return DatabaseSchema.model_validate(parsed)
    except ValidationError as e:
        logger.warning("schema.parse_failed", error=str(e))
        return None


def primary_key(table: TableDef) -> Optional[str]:
    for name, col in table.columns.items():
        if col.primary_key:
            return name
    return None


def sensitive_columns(table: TableDef) -> List[str]:
    return [name for name, col in table.columns.items() if col.sensitive]


def relation_edges(schema: DatabaseSchema) -> List[RelationEdge]:
    """One edge per unordered table pair, first declaration wins.

    Targets missing from ``tables`` are kept and marked unresolved.
    """
    edges: List[RelationEdge] = []
    seen = set()
    for table_name, table in schema.tables.items():
        for rel_name, rel in table.relations.items():
            pair = tuple(sorted((table_name, rel.table)))
            if pair in seen:
                continue
            seen.add(pair)
            edges.append(RelationEdge(
                from_table=table_name,
                to_table=rel.table,
                name=rel_name,
                type=rel.type,
                foreign_key=rel.foreign_key,
                resolved=rel.table in schema.tables,
            ))
    return edges


def search_tables(schema: DatabaseSchema, term: str) -> List[str]:
    """Substring match on table names and descriptions, fuzzy match as a fallback."""
    names = list(schema.tables.keys())
    needle = term.strip().lower()
    if not needle:
        return names
    matches = [
        name for name, table in schema.tables.items()
        if needle in name.lower() or needle in (table.description or "").lower()
    ]
    if matches:
        return matches
    scored = fuzz_process.extract(needle, names, scorer=fuzz.WRatio, limit=None)
    return [match for match, score, _ in scored if score >= FUZZY_THRESHOLD]


def describe_schema(schema: DatabaseSchema, search: Optional[str] = None) -> SchemaResponse:
    sensitive: Dict[str, List[str]] = {}
    for name, table in schema.tables.items():
        cols = sensitive_columns(table)
        if cols:
            sensitive[name] = cols
    return SchemaResponse(
        database=schema.database,
        tables=schema.tables,
        primary_keys={name: primary_key(table) for name, table in schema.tables.items()},
        relations=relation_edges(schema),
        sensitive_columns=sensitive,
        matches=search_tables(schema, search) if search is not None else None,
    )
