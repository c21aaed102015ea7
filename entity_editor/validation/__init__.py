from .engine import coerce_import_value, is_empty, validate_edit_reason, validate_field, validate_record

__all__ = [
    "coerce_import_value",
    "is_empty",
    "validate_edit_reason",
    "validate_field",
    "validate_record",
]
