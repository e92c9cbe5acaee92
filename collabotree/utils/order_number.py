import random

from collabotree.extensions import db
from collabotree.models import Order

MAX_RANDOM_ATTEMPTS = 100


def _taken(number):
    return db.session.query(Order.id).filter_by(order_number=number).first() is not None


def generate_order_number():
    """Generates a unique 4-digit order number (1000-9999)."""
    for _ in range(MAX_RANDOM_ATTEMPTS):
        number = str(random.randint(1000, 9999))
        if not _taken(number):
            return number

    # Random space is crowded, fall back to the first free number.
    for candidate in range(1000, 10000):
        number = str(candidate)
        if not _taken(number):
            return number

    raise RuntimeError("Unable to generate unique order number")
