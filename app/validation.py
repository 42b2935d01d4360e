"""Turns request validation failures into a field-keyed error map.

Bodies are checked by the pydantic schemas in ``models_pydantic``; this
module gives each failing field the message clients expect and rejects the
whole request at once, so every bad field is reported together.
"""

import math
from typing import Dict, Iterable, Mapping, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from errors import ValidationFailed

FIELD_MESSAGES = {
    "address": "Street address is required",
    "city": "City is required",
    "state": "State is required",
    "country": "Country is required",
    "lat": "Latitude is not valid",
    "lng": "Longitude is not valid",
    "name": "Name must be between 1 and 50 characters",
    "description": "Description is required",
    "price": "Price per day is required",
    "review": "Review text is required",
    "stars": "Stars must be an integer from 1 to 5",
    "url": "Image url is required",
    "preview": "Preview must be true or false",
    "startDate": "startDate is required",
    "endDate": "endDate is required",
    "credential": "Email or username is required",
    "password": "Password is required",
    "email": "Invalid email",
    "username": "Username is required",
    "firstName": "First Name is required",
    "lastName": "Last Name is required",
}

# query parameter -> (message, lower bound)
SPOT_FILTERS = {
    "minLat": ("Minimum latitude is invalid", None),
    "maxLat": ("Maximum latitude is invalid", None),
    "minLng": ("Minimum longitude is invalid", None),
    "maxLng": ("Maximum longitude is invalid", None),
    "minPrice": ("Minimum price must be greater than or equal to 0", 0),
    "maxPrice": ("Maximum price must be greater than or equal to 0", 0),
}


def field_errors(errors: Iterable[dict]) -> Dict[str, str]:
    """Collapse pydantic error dicts into one message per field."""
    result = {}
    for error in errors:
        loc = [str(part) for part in error.get("loc", ()) if not isinstance(part, int)]
        field = loc[-1] if loc else "body"
        if field in result:
            continue
        if error.get("type") == "value_error" and "error" in error.get("ctx", {}):
            result[field] = str(error["ctx"]["error"])
        else:
            result[field] = FIELD_MESSAGES.get(field, error.get("msg", "Invalid value"))
    return result


def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    failure = ValidationFailed(errors=field_errors(exc.errors()))
    return JSONResponse(status_code=failure.status_code, content=failure.to_dict())


def _to_number(value: str) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def parse_spot_filters(raw: Mapping[str, Optional[str]]) -> Dict[str, float]:
    """Validate the numeric search filters of ``GET /spots``.

    Blank or absent parameters are ignored. Returns the parsed values keyed
    by query parameter name, or raises ``ValidationFailed`` listing every
    invalid parameter.
    """
    parsed = {}
    errors = {}
    for name, (message, lower_bound) in SPOT_FILTERS.items():
        value = raw.get(name)
        if value is None or value.strip() == "":
            continue
        number = _to_number(value)
        if number is None or (lower_bound is not None and number < lower_bound):
            errors[name] = message
        else:
            parsed[name] = number
    if errors:
        raise ValidationFailed(errors=errors)
    return parsed
