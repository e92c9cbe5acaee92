from collabotree import errors
from collabotree.extensions import db


def commit_or_rollback():
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def get_or_raise(model, object_id, message=None):
    obj = db.session.get(model, object_id)
    if obj is None:
        raise errors.NotFound(message or f"{model.__name__} not found")
    return obj


def parse_enum(enum_cls, value, field='status'):
    """Turn a query-string value into ``enum_cls`` or raise ValidationError."""
    try:
        return enum_cls(str(value).upper())
    except ValueError:
        choices = ", ".join(e.value for e in enum_cls)
        raise errors.ValidationError(f"Invalid {field}", details={field: [f"Must be one of: {choices}"]})


def guarded_update(model, object_id, column, expected, values):
    """UPDATE ``model`` row only while ``column`` still equals ``expected``.

    Returns True when exactly one row changed. A False result means another
    request already moved the row out of the expected state.
    """
    changed = (
        model.query
        .filter(model.id == object_id, column == expected)
        .update(values, synchronize_session="fetch")
    )
    return changed == 1
