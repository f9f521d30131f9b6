# /rollcall/db/base_class.py

from sqlalchemy.orm import declarative_base, declared_attr


class _TableNameMixin:
    # Default table name is the pluralized class name; models may override it.
    @declared_attr
    def __tablename__(cls) -> str:
        return cls.__name__.lower() + "s"


Base = declarative_base(cls=_TableNameMixin)
