"""Store-agnostic query predicates.

A predicate is a small frozen record; a predicate set is a tuple of them.
Store adapters (see ``tasks.store``) translate each variant into their own
query language, so nothing here knows about the ORM.

Predicate sets are laid out as ``[select?, filters..., order?, limit?]``.
"""

from dataclasses import dataclass

from .exceptions import ValidationError


@dataclass(frozen=True)
class Select:
    fields: tuple


@dataclass(frozen=True)
class Eq:
    field: str
    value: object


@dataclass(frozen=True)
class IsNull:
    field: str


@dataclass(frozen=True)
class IsNotNull:
    field: str


@dataclass(frozen=True)
class RangeFrom:
    """``field >= value``"""

    field: str
    value: object


@dataclass(frozen=True)
class RangeBefore:
    """``field < value``"""

    field: str
    value: object


@dataclass(frozen=True)
class Contains:
    field: str
    value: str


@dataclass(frozen=True)
class And:
    predicates: tuple


@dataclass(frozen=True)
class OrderBy:
    field: str
    descending: bool = False


@dataclass(frozen=True)
class Limit:
    count: int


FILTER_TYPES = (Eq, IsNull, IsNotNull, RangeFrom, RangeBefore, Contains, And)


def _check_field(name):
    if not isinstance(name, str) or not name.strip():
        raise ValidationError(f"Field name must be a non-empty string, got {name!r}")
    return name


def require_id(value, label="id"):
    """Return *value* if it is a usable identifier, else raise."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{label} must be a non-empty string, got {value!r}")
    return value


def select(*fields):
    if not fields:
        raise ValidationError("select() needs at least one field")
    return Select(tuple(_check_field(f) for f in fields))


def equal(field, value):
    return Eq(_check_field(field), value)


def is_null(field):
    return IsNull(_check_field(field))


def is_not_null(field):
    return IsNotNull(_check_field(field))


def range_from(field, value):
    if value is None:
        raise ValidationError(f"range_from({field!r}) needs a lower bound")
    return RangeFrom(_check_field(field), value)


def range_before(field, value):
    if value is None:
        raise ValidationError(f"range_before({field!r}) needs an upper bound")
    return RangeBefore(_check_field(field), value)


def contains(field, value):
    if not isinstance(value, str):
        raise ValidationError(f"contains({field!r}) needs a string, got {value!r}")
    return Contains(_check_field(field), value)


def logical_and(*predicates):
    if not predicates:
        raise ValidationError("logical_and() needs at least one predicate")
    for predicate in predicates:
        if not isinstance(predicate, FILTER_TYPES):
            raise ValidationError(f"logical_and() only combines filters, got {predicate!r}")
    return And(tuple(predicates))


def order_ascending(field):
    return OrderBy(_check_field(field))


def order_descending(field):
    return OrderBy(_check_field(field), descending=True)


def limit(count):
    # bool is an int subclass; floats cover nan/inf.
    if isinstance(count, bool) or not isinstance(count, int):
        raise ValidationError(f"limit must be an integer, got {count!r}")
    if count < 1:
        raise ValidationError(f"limit must be positive, got {count}")
    return Limit(count)


def filters_of(predicates):
    """Return only the filter predicates of a set, in order."""
    return tuple(p for p in predicates if isinstance(p, FILTER_TYPES))


def count_view(predicates):
    """Turn a listing set into its count variant.

    Keeps the filters, drops ordering and any existing limit, and asks the
    store for ids only, one row at most: the total comes back regardless.
    """
    return (select("id"), *filters_of(predicates), limit(1))


def is_count_view(predicates):
    # List views may open with a Select too (user_projects narrows its
    # columns); a count view is the one selecting only "id" under Limit(1).
    return (
        bool(predicates)
        and predicates[0] == Select(("id",))
        and predicates[-1] == Limit(1)
    )
