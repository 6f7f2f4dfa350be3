"""
Scalar value conversion between Python values and their document-safe representations.

Integers are normalized to the narrowest BSON width that holds them: int32 range values stay plain `int`, int64 range
values become `bson.int64.Int64`, and unsigned values beyond int64 are written as decimal strings. Values with no BSON
counterpart are converted to one that round trips through `from_document_value`: enums become their values, dates become
midnight datetimes, complex numbers become strings, and UUIDs become standard binary.
"""
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation as DecimalInvalidOperation
from enum import Enum
from typing import Any, Callable
from uuid import UUID

from bson import Binary, Decimal128, ObjectId
from bson.errors import InvalidId
from bson.int64 import Int64

from odmi.errors import ValueConversionError


INT32_MIN, INT32_MAX = -(2**31), 2**31 - 1
INT64_MIN, INT64_MAX = -(2**63), 2**63 - 1
UINT64_MAX = 2**64 - 1

ZERO_OBJECT_ID = ObjectId(bytes(12))
ZERO_DATETIME = datetime(1, 1, 1)
ZERO_DATE = date(1, 1, 1)

DOCUMENT_SAFE_TYPES = (bool, int, Int64, float, str, bytes, Binary, ObjectId, datetime, Decimal128)
SCALAR_TYPES = (bool, int, Int64, float, str, bytes, Binary, ObjectId, datetime, date, Decimal, Decimal128, complex, UUID)


def is_supported_scalar(scalar_type: Any) -> bool:
    """Whether the converter knows how to map the type in both directions."""
    if not isinstance(scalar_type, type):
        return False

    return scalar_type in SCALAR_TYPES or issubclass(scalar_type, Enum)


def to_document_value(value: Any) -> Any:
    """Converts a scalar to the value that is stored in a document.

    Raises:
        ValueConversionError: The value has no document representation.
    """
    match value:
        case None | bool():
            return value

        case Enum():
            return to_document_value(value.value)

        case Int64():
            return value

        case int() if INT32_MIN <= value <= INT32_MAX:
            return value

        case int() if INT64_MIN <= value <= INT64_MAX:
            return Int64(value)

        case int() if 0 <= value <= UINT64_MAX:
            return str(value)

        case int():
            raise ValueConversionError(f"Integer {value} does not fit in a 64 bit document value")

        case float() | str() | bytes() | ObjectId() | datetime() | Decimal128():
            return value

        case date():
            return datetime.combine(value, time())

        case Decimal():
            return Decimal128(value)

        case complex():
            return str(value)

        case UUID():
            return Binary.from_uuid(value)

        case _:
            raise ValueConversionError(f"Cannot store a value of type {type(value).__name__} in a document")


def from_document_value(into: Any, value: Any) -> Any:
    """Converts a document value back into the declared Python type.

    `None` always passes through; the mapper decides what a stored null means for the field.

    Raises:
        ValueConversionError: The stored value cannot represent the declared type.
    """
    if value is None or into is Any or into is object:
        return value

    if isinstance(into, type) and issubclass(into, Enum):
        try:
            return into(value)
        except ValueError as error:
            raise ValueConversionError(f"{value!r} is not a valid {into.__name__}") from error

    decoder = _DECODERS.get(into)
    if decoder is None:
        raise ValueConversionError(f"Cannot read document values into {into!r}")

    try:
        return decoder(value)
    except (TypeError, ValueError, ArithmeticError) as error:
        raise ValueConversionError(
            f"Cannot convert stored {type(value).__name__} {value!r} to {into.__name__}"
        ) from error


def zero_scalar(scalar_type: Any) -> Any:
    """The zero state of a scalar type, used when a non-nullable field reads a stored null."""
    if isinstance(scalar_type, type) and issubclass(scalar_type, Enum):
        return next(iter(scalar_type))

    try:
        return _ZERO_VALUES[scalar_type]
    except KeyError:
        raise ValueConversionError(f"{scalar_type!r} has no zero value") from None


def _expect(*types: type) -> Callable[[Any], Any]:
    def decode(value: Any) -> Any:
        if isinstance(value, bool) and bool not in types:
            raise TypeError(f"expected {types[0].__name__}")

        if not isinstance(value, types):
            raise TypeError(f"expected {types[0].__name__}")

        return value

    return decode


def _decode_int(value: Any) -> int:
    match value:
        case bool():
            raise TypeError("booleans are not integers")

        case int():
            return int(value)

        case str():
            return int(value, 10)

        case float() if value.is_integer():
            return int(value)

        case _:
            raise TypeError("expected int")


def _decode_float(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError("expected float")

    return float(value)


def _decode_bytes(value: Any) -> bytes:
    if not isinstance(value, bytes):
        raise TypeError("expected bytes")

    return bytes(value)


def _decode_object_id(value: Any) -> ObjectId:
    if isinstance(value, (str, bytes)):
        try:
            return ObjectId(value)
        except InvalidId as error:
            raise ValueError(str(error)) from error

    return _expect(ObjectId)(value)


def _decode_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()

    return _expect(date)(value)


def _decode_decimal(value: Any) -> Decimal:
    match value:
        case Decimal128():
            return value.to_decimal()

        case Decimal():
            return value

        case bool():
            raise TypeError("booleans are not decimals")

        case int() | float() | str():
            try:
                return Decimal(str(value))
            except DecimalInvalidOperation as error:
                raise ValueError(str(error)) from error

        case _:
            raise TypeError("expected decimal")


def _decode_complex(value: Any) -> complex:
    match value:
        case bool():
            raise TypeError("booleans are not complex numbers")

        case complex() | int() | float():
            return complex(value)

        case str():
            return complex(value.replace(" ", ""))

        case _:
            raise TypeError("expected complex")


def _decode_uuid(value: Any) -> UUID:
    match value:
        case UUID():
            return value

        case Binary():
            return value.as_uuid()

        case str():
            return UUID(value)

        case _:
            raise TypeError("expected uuid")


_DECODERS: dict[type, Callable[[Any], Any]] = {
    bool: _expect(bool),
    int: _decode_int,
    Int64: lambda value: Int64(_decode_int(value)),
    float: _decode_float,
    str: _expect(str),
    bytes: _decode_bytes,
    Binary: lambda value: value if isinstance(value, Binary) else Binary(_decode_bytes(value)),
    ObjectId: _decode_object_id,
    datetime: _expect(datetime),
    date: _decode_date,
    Decimal: _decode_decimal,
    Decimal128: lambda value: value if isinstance(value, Decimal128) else Decimal128(_decode_decimal(value)),
    complex: _decode_complex,
    UUID: _decode_uuid,
}

_ZERO_VALUES: dict[type, Any] = {
    bool: False,
    int: 0,
    Int64: Int64(0),
    float: 0.0,
    str: "",
    bytes: b"",
    Binary: Binary(b""),
    ObjectId: ZERO_OBJECT_ID,
    datetime: ZERO_DATETIME,
    date: ZERO_DATE,
    Decimal: Decimal(0),
    Decimal128: Decimal128("0"),
    complex: 0j,
    UUID: UUID(int=0),
}
