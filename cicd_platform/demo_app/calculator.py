"""Arithmetic behind POST /api/calculate."""

import math
from numbers import Number
from typing import Any, Dict, Optional, Union

from ..core.errors import CalculationError

OPERATIONS = ("add", "subtract", "multiply", "divide")

MISSING_FIELDS = "Missing required fields: operation, a, b"
INVALID_OPERATION = "Invalid operation. Use: add, subtract, multiply, divide"
NOT_NUMBERS = "Fields a and b must be numbers"
DIVISION_BY_ZERO = "Division by zero"


def _is_number(value: Any) -> bool:
    # bool is an int subclass but not a valid operand; NaN and Infinity
    # are accepted by Python's JSON parser but are not JSON numbers
    if isinstance(value, bool) or not isinstance(value, Number):
        return False
    return not (isinstance(value, float) and not math.isfinite(value))


def calculate(operation: str, a: Any, b: Any) -> Optional[Union[int, float]]:
    """
    Apply an operation to two numbers.

    A result too large for a float comes back as ``None`` (JSON ``null``),
    since JSON cannot carry Infinity.

    Raises:
        CalculationError: Missing fields, unknown operation, non-numeric
            operands or division by zero
    """
    if not operation or a is None or b is None:
        raise CalculationError(MISSING_FIELDS)
    if operation not in OPERATIONS:
        raise CalculationError(INVALID_OPERATION)
    if not (_is_number(a) and _is_number(b)):
        raise CalculationError(NOT_NUMBERS)
    if operation == "divide" and b == 0:
        raise CalculationError(DIVISION_BY_ZERO)

    try:
        if operation == "add":
            result = a + b
        elif operation == "subtract":
            result = a - b
        elif operation == "multiply":
            result = a * b
        else:
            result = a / b
    except OverflowError:
        return None

    if isinstance(result, float) and not math.isfinite(result):
        return None
    return result


def calculate_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Validate a request body and return the response body."""
    if not isinstance(payload, dict):
        raise CalculationError(MISSING_FIELDS)
    operation, a, b = payload.get("operation"), payload.get("a"), payload.get("b")
    return {
        "operation": operation,
        "a": a,
        "b": b,
        "result": calculate(operation, a, b),
    }
