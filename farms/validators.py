"""
Validation of farmer request submissions.

Checks run in a fixed order and stop at the first failing stage; within the
required-field stage every missing field is reported at once.
"""
import math
import re

from core.exceptions import ValidationError

EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
SIRET_RE = re.compile(r'^\d{14}$')
DEPARTMENT_RE = re.compile(r'^(?:\d{2,3}|2[AB])$')

REQUIRED_TEXT_FIELDS = (
    'firstName',
    'lastName',
    'farmName',
    'siret',
    'department',
    'location',
)
OPTIONAL_TEXT_FIELDS = ('phone', 'description', 'products', 'website')

FIELD_MAX_LENGTHS = {
    'firstName': 100,
    'lastName': 100,
    'farmName': 200,
    'location': 500,
    'phone': 30,
    'website': 500,
}


def _text(value):
    if value is None:
        return ''
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value).strip()
    return ''


def _is_blank(value):
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def _coordinate(value):
    """Coerce to float, or None when not a finite number."""
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def normalize_siret(value):
    return re.sub(r'\s+', '', _text(value))


def is_valid_siret(value):
    return bool(SIRET_RE.match(normalize_siret(value)))


def is_valid_email(value):
    return bool(EMAIL_RE.match(_text(value)))


def is_valid_department(value):
    return bool(DEPARTMENT_RE.match(_text(value).upper()))


def validate_coordinates(lat, lng):
    """Return (lat, lng) as floats or raise ValidationError."""
    errors = []
    lat_value = _coordinate(lat)
    lng_value = _coordinate(lng)

    if lat_value is None:
        errors.append('lat: must be a finite number')
    elif not -90 <= lat_value <= 90:
        errors.append('lat: must be between -90 and 90')

    if lng_value is None:
        errors.append('lng: must be a finite number')
    elif not -180 <= lng_value <= 180:
        errors.append('lng: must be between -180 and 180')

    if errors:
        raise ValidationError('Invalid coordinates', errors)
    return lat_value, lng_value


def validate_submission(data, identity_email=''):
    """
    Validate and normalize a farmer request payload.

    Returns a dict keyed by FarmerRequest field names.
    """
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')

    email = _text(identity_email) or _text(data.get('email'))

    # Required fields
    missing = [field for field in REQUIRED_TEXT_FIELDS if _is_blank(data.get(field))]
    missing += [field for field in ('lat', 'lng') if _is_blank(data.get(field))]
    if not email:
        missing.append('email')
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}",
            [f'{field}: this field is required' for field in missing],
        )

    too_long = [
        f'{field}: must be at most {limit} characters'
        for field, limit in FIELD_MAX_LENGTHS.items()
        if len(_text(data.get(field))) > limit
    ]
    if too_long:
        raise ValidationError('Some fields are too long', too_long)

    lat, lng = validate_coordinates(data.get('lat'), data.get('lng'))

    if not is_valid_email(email):
        raise ValidationError('Invalid email address', ['email: invalid format'])

    siret = normalize_siret(data.get('siret'))
    if not SIRET_RE.match(siret):
        raise ValidationError('SIRET must contain exactly 14 digits', ['siret: expected 14 digits'])

    department = _text(data.get('department')).upper()
    if not DEPARTMENT_RE.match(department):
        raise ValidationError(
            'Invalid department code',
            ['department: expected a French département code such as 33, 974 or 2A'],
        )

    cleaned = {
        'email': email.lower(),
        'first_name': _text(data.get('firstName')),
        'last_name': _text(data.get('lastName')),
        'farm_name': _text(data.get('farmName')),
        'siret': siret,
        'department': department,
        'location': _text(data.get('location')),
        'lat': lat,
        'lng': lng,
    }
    for field in OPTIONAL_TEXT_FIELDS:
        cleaned[field] = _text(data.get(field))
    return cleaned
