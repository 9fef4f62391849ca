"""
Unit tests for ticket number generation and validation
"""

import random

import pytest

from bolao.core.errors import InvalidNumbers
from bolao.services.tickets import count_hits, generate_ticket_numbers, validate_ticket_numbers


class TestGenerateTicketNumbers:
    
    def test_six_distinct_numbers_in_range(self):
        for _ in range(200):
            numbers = generate_ticket_numbers()
            assert len(numbers) == 6
            assert len(set(numbers)) == 6
            assert all(1 <= n <= 60 for n in numbers)
            assert numbers == sorted(numbers)
    
    def test_seeded_generator_is_reproducible(self):
        assert generate_ticket_numbers(random.Random(42)) == generate_ticket_numbers(random.Random(42))


class TestValidateTicketNumbers:
    
    def test_returns_sorted_ticket(self):
        assert validate_ticket_numbers([60, 1, 33, 12, 7, 45]) == [1, 7, 12, 33, 45, 60]
    
    @pytest.mark.parametrize("numbers", [
        [1, 2, 3, 4, 5],
        [1, 2, 3, 4, 5, 6, 7],
        [1, 1, 2, 3, 4, 5],
        [0, 1, 2, 3, 4, 5],
        [1, 2, 3, 4, 5, 61],
        ["a", 2, 3, 4, 5, 6],
    ])
    def test_rejects_invalid_tickets(self, numbers):
        with pytest.raises(InvalidNumbers):
            validate_ticket_numbers(numbers)


def test_count_hits():
    assert count_hits([1, 2, 3, 4, 5, 6], [4, 5, 6, 7, 8, 9]) == 3
    assert count_hits([1, 2, 3, 4, 5, 6], [7, 8, 9, 10, 11, 12]) == 0
    assert count_hits([1, 2, 3, 4, 5, 6], [6, 5, 4, 3, 2, 1]) == 6
