"""
Reference generator: formats and collision handling.
"""

import re

from django.test import SimpleTestCase

from apps.payments import references


class ReferenceFormatTests(SimpleTestCase):
    def test_reference_code_is_prefix_plus_five_or_six_digits(self):
        for _ in range(500):
            code = references.generate_reference_code()
            self.assertRegex(code, r"^T\d{5,6}$")

    def test_reference_code_uses_given_prefix(self):
        self.assertTrue(references.generate_reference_code(prefix="W").startswith("W"))

    def test_both_body_lengths_occur(self):
        lengths = {len(references.generate_reference_code()) for _ in range(2000)}
        self.assertEqual(lengths, {6, 7})

    def test_customer_id_format(self):
        self.assertRegex(references.generate_customer_id(), r"^U\d{5,6}$")

    def test_unique_reference_is_crockford_base32(self):
        pattern = re.compile(r"^UB[0-9ABCDEFGHJKMNPQRSTVWXYZ]{16}$")
        values = {references.generate_unique_reference() for _ in range(1000)}
        self.assertEqual(len(values), 1000)
        for value in values:
            self.assertRegex(value, pattern)


class UnusedReferenceTests(SimpleTestCase):
    def test_skips_taken_values(self):
        draws = iter(["T00001", "T00002", "T00003"])
        taken = {"T00001", "T00002"}

        value = references.unused_reference(lambda: next(draws), taken.__contains__)

        self.assertEqual(value, "T00003")

    def test_gives_up_after_bounded_attempts(self):
        calls = []

        def generator():
            calls.append(1)
            return "T00001"

        with self.assertRaises(RuntimeError):
            references.unused_reference(generator, lambda value: True, attempts=3)
        self.assertEqual(len(calls), 3)
