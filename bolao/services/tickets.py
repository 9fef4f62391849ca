"""
Lottery ticket numbers: validation and random assignment
"""

import random
from typing import Iterable, List, Optional

from bolao.core.errors import InvalidNumbers

NUMBERS_PER_TICKET = 6
MIN_NUMBER = 1
MAX_NUMBER = 60

_system_random = random.SystemRandom()


def generate_ticket_numbers(rng: Optional[random.Random] = None) -> List[int]:
    """Draw 6 distinct numbers uniformly from [1, 60], sorted ascending."""
    rng = rng or _system_random
    return sorted(rng.sample(range(MIN_NUMBER, MAX_NUMBER + 1), NUMBERS_PER_TICKET))


def validate_ticket_numbers(numbers: Iterable[int]) -> List[int]:
    """
    Validate a ticket and return it sorted.
    
    Raises:
        InvalidNumbers unless the ticket holds exactly 6 distinct integers in [1, 60]
    """
    try:
        values = [int(n) for n in numbers]
    except (TypeError, ValueError):
        raise InvalidNumbers("Ticket numbers must be integers")
    
    if len(values) != NUMBERS_PER_TICKET:
        raise InvalidNumbers(f"Exactly {NUMBERS_PER_TICKET} numbers are required, got {len(values)}")
    if len(set(values)) != NUMBERS_PER_TICKET:
        raise InvalidNumbers("Ticket numbers must be distinct")
    out_of_range = [n for n in values if n < MIN_NUMBER or n > MAX_NUMBER]
    if out_of_range:
        raise InvalidNumbers(f"Numbers must be between {MIN_NUMBER} and {MAX_NUMBER}: {out_of_range}")
    
    return sorted(values)


def count_hits(ticket: Iterable[int], drawn: Iterable[int]) -> int:
    return len(set(ticket) & set(drawn))
