from datetime import date, datetime

from flask_sqlalchemy import SQLAlchemy

from utils.formatters import camel_case, parse_date, parse_datetime

db = SQLAlchemy()


class SerializerMixin:
    """JSON (de)serialization shared by every table.

    Column attributes stay snake_case; the API speaks camelCase, so
    ``academic_year_id`` is exposed as ``academicYearId``.
    """

    __serialize_exclude__ = ()

    def to_dict(self):
        data = {}
        for column in self.__table__.columns:
            if column.key in self.__serialize_exclude__:
                continue
            value = getattr(self, column.key)
            if isinstance(value, (date, datetime)):
                value = value.isoformat()
            data[camel_case(column.key)] = value
        return data

    @classmethod
    def from_dict(cls, data, include_id=False):
        """Build an unsaved instance from an exported row."""
        values = {}
        for column in cls.__table__.columns:
            if column.key == 'id' and not include_id:
                continue
            key = camel_case(column.key)
            if key not in data:
                continue
            value = data[key]
            if value is not None:
                python_type = column.type.python_type
                if python_type is datetime:
                    value = parse_datetime(value)
                elif python_type is date:
                    value = parse_date(value)
                elif python_type is bool:
                    value = bool(value)
            values[column.key] = value
        return cls(**values)
