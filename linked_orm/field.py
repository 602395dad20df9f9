import datetime
from decimal import Decimal

from .key_words import escape_for_storage, get_column_name

SQL_TYPES = {
    int: "INTEGER",
    float: "REAL",
    str: "TEXT",
    bool: "INTEGER",
    datetime.datetime: "TEXT",
    Decimal: "REAL",
}


class Field:
    def __init__(self, py_type, primary_key=False, nullable=True, default=None):
        self.py_type = py_type
        self.primary_key = primary_key
        self.nullable = nullable
        self.default = default
        self.name = None

    def __set_name__(self, owner, name):
        self.name = name

    def __get__(self, obj, owner):
        """Column on class access (``Book.title``), stored value on instance access."""
        if obj is None:
            from .query import Column
            return Column(self.name, getattr(owner, "_table_name", None))
        return obj.__dict__.get(self.name, self.initial_value())

    def __set__(self, obj, value):
        obj.__dict__[self.name] = value

    def initial_value(self):
        if callable(self.default):
            return self.default()
        return self.default

    @property
    def column_name(self):
        return get_column_name(self.name)

    def sql_type(self):
        return SQL_TYPES.get(self.py_type, "TEXT")

    def column_definition(self):
        """Column clause for CREATE TABLE."""
        col = f"{self.column_name} {self.sql_type()}"
        if self.primary_key:
            col += " PRIMARY KEY AUTOINCREMENT"
        if not self.nullable:
            col += " NOT NULL"
        if isinstance(self.default, bool):
            col += f" DEFAULT {int(self.default)}"
        elif isinstance(self.default, (int, float, str)) and not self.primary_key:
            col += f" DEFAULT {escape_for_storage(self.default)}"
        return col

    def python_to_sql(self, value):
        if value is None:
            return None
        if isinstance(value, datetime.datetime):
            return value.isoformat()
        if isinstance(value, Decimal):
            return float(value)
        if isinstance(value, bool):
            return int(value)
        return value

    def sql_to_python(self, value):
        if value is None:
            return None
        if self.py_type == datetime.datetime and isinstance(value, str):
            return datetime.datetime.fromisoformat(value)
        if self.py_type == bool and isinstance(value, int):
            return bool(value)
        if self.py_type == Decimal and isinstance(value, (int, float)):
            return Decimal(str(value))
        return value
