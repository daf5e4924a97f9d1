# Copyright 2023 Brian T. Park
#
# MIT License

import unittest

from compacttztools.generator.base60 import from_base60
from compacttztools.generator.base60 import from_base60_digit
from compacttztools.generator.base60 import to_base60
from compacttztools.generator.base60 import to_base60_digit


class TestBase60Digit(unittest.TestCase):
    def test_to_base60_digit(self) -> None:
        self.assertEqual('0', to_base60_digit(0))
        self.assertEqual('9', to_base60_digit(9))
        self.assertEqual('a', to_base60_digit(10))
        self.assertEqual('z', to_base60_digit(35))
        self.assertEqual('A', to_base60_digit(36))
        self.assertEqual('X', to_base60_digit(59))

    def test_to_base60_digit_fails(self) -> None:
        self.assertRaises(ValueError, to_base60_digit, -1)
        self.assertRaises(ValueError, to_base60_digit, 60)

    def test_from_base60_digit(self) -> None:
        self.assertEqual(0, from_base60_digit('0'))
        self.assertEqual(10, from_base60_digit('a'))
        self.assertEqual(59, from_base60_digit('X'))
        self.assertRaises(ValueError, from_base60_digit, 'Y')
        self.assertRaises(ValueError, from_base60_digit, '.')


class TestBase60(unittest.TestCase):
    def test_to_base60(self) -> None:
        self.assertEqual('0', to_base60(0))
        self.assertEqual('X', to_base60(59))
        self.assertEqual('10', to_base60(60))
        self.assertEqual('100', to_base60(3600))
        self.assertEqual('-11', to_base60(-61))
        # Floats are rounded.
        self.assertEqual('u', to_base60(29.6))

    def test_to_base60_fixed_point(self) -> None:
        self.assertEqual('0', to_base60(0, True))
        self.assertEqual('1.u', to_base60(90, True))
        self.assertEqual('0.u', to_base60(30, True))
        self.assertEqual('1', to_base60(60, True))
        self.assertEqual('10', to_base60(3600, True))
        self.assertEqual('-50', to_base60(-18000, True))
        self.assertEqual('-4U.2', to_base60(-17762, True))

    def test_from_base60(self) -> None:
        self.assertEqual(0, from_base60('0'))
        self.assertEqual(59, from_base60('X'))
        self.assertEqual(3600, from_base60('100'))
        self.assertEqual(-61, from_base60('-11'))
        self.assertEqual(61, from_base60('+11'))

    def test_from_base60_fixed_point(self) -> None:
        self.assertEqual(90, from_base60('1.u', True))
        self.assertEqual(30, from_base60('0.u', True))
        self.assertEqual(3600, from_base60('10', True))
        self.assertEqual(-18000, from_base60('-50', True))
        self.assertEqual(-17762, from_base60('-4U.2', True))
        # An empty fraction is zero.
        self.assertEqual(60, from_base60('1.', True))

    def test_from_base60_fails(self) -> None:
        self.assertRaises(ValueError, from_base60, '')
        self.assertRaises(ValueError, from_base60, '-')
        self.assertRaises(ValueError, from_base60, '1Z')

    def test_bijection(self) -> None:
        for x in range(-100000, 100000, 37):
            self.assertEqual(x, from_base60(to_base60(x)))
            self.assertEqual(x, from_base60(to_base60(x, True), True))


if __name__ == '__main__':
    unittest.main()
