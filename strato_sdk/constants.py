# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

import unittest
from decimal import Decimal

ETHER = 10**18
FINNEY = 10**15
SZABO = 10**12
GWEI = 10**9
MWEI = 10**6
KWEI = 10**3

FAUCET_REWARD = 1000 * ETHER

UNITS = [
    (ETHER, "Ether"),
    (FINNEY, "Finney"),
    (SZABO, "Szabo"),
    (GWEI, "GWei"),
    (MWEI, "Mwei"),
    (KWEI, "Kwei"),
]


def format_wei(wei: int) -> str:
    """Render an amount in wei with the largest unit not exceeding it."""
    amount = Decimal(wei)
    for unit, name in UNITS:
        if abs(amount) >= unit:
            return f"{_plain(amount / unit)} {name}"
    return f"{_plain(amount)} Wei"


def _plain(value: Decimal) -> str:
    return format(value.normalize(), "f")


class Test(unittest.TestCase):
    def test_format_wei(self):
        self.assertEqual(format_wei(0), "0 Wei")
        self.assertEqual(format_wei(999), "999 Wei")
        self.assertEqual(format_wei(1000), "1 Kwei")
        self.assertEqual(format_wei(2 * MWEI), "2 Mwei")
        self.assertEqual(format_wei(1500 * GWEI), "1.5 Szabo")
        self.assertEqual(format_wei(FAUCET_REWARD), "1000 Ether")
        self.assertEqual(format_wei(-3 * FINNEY), "-3 Finney")
