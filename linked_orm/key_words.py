import datetime
from decimal import Decimal

KEY_WORDS = ["order", "group", "select", "where", "table"]

def get_column_name(name: str) -> str:
    """Return the column name, escaping it if it's a SQL keyword."""
    if name.lower() in KEY_WORDS:
        return f"[{name}]"
    return name

def quote_identifier(name: str) -> str:
    """Quote a table or column name for use in a generated statement."""
    return '"' + name.replace('"', '""') + '"'

def escape_for_storage(value) -> str:
    """Render a Python value as a SQL literal that can be embedded in a statement.

    Used where a value list is inlined (e.g. ``child_id IN (1, 2, 3)``)
    instead of bound as a parameter.
    """
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, Decimal):
        return str(float(value))
    if isinstance(value, datetime.datetime):
        value = value.isoformat()
    text = str(value).replace("'", "''")
    return f"'{text}'"

def escape_list(values) -> str:
    """Comma-join escaped values, for IN clauses."""
    return ", ".join(escape_for_storage(v) for v in values)
