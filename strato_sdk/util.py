# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Polling and helper utilities for the STRATO Python SDK.

The central piece is :func:`until`, which repeatedly performs an asynchronous
action until a predicate accepts its result or a time budget runs out. It is
used to resolve pending transactions and to wait for the search index to
catch up with freshly created contracts::

    def predicate(rows):
        return len(rows) > 0

    rows = await until(predicate, lambda o: client.search(user, contract, o), options)

Between attempts :func:`until` sleeps for a delay that starts at 500 ms and
grows by 10 ms per attempt. Errors raised by the action are not retried.
"""

import asyncio
import random
import re
import unittest
import unittest.mock
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

T = TypeVar("T")

DEFAULT_TIMEOUT = 60000
INITIAL_DELAY = 500
DELAY_INCREMENT = 10


async def sleep(ms: int) -> None:
    await asyncio.sleep(ms / 1000)


async def until(
    predicate: Callable[[T], Any],
    action: Callable[[Any], Awaitable[T]],
    options: Any = None,
    timeout: int = DEFAULT_TIMEOUT,
) -> T:
    """Perform ``action`` until ``predicate`` accepts its result.

    :param predicate: Receives the raw result of each attempt and returns a truthy
        value once the result is final.
    :param action: Coroutine function invoked with ``options`` on every attempt,
        typically a network request.
    :param options: Passed through to ``action`` unchanged.
    :param timeout: Total sleep budget in milliseconds.
    :return: The first result accepted by ``predicate``.
    :raises UntilTimeoutError: If no result was accepted within ``timeout``.
    """
    delay = INITIAL_DELAY
    total_sleep = 0
    while total_sleep < timeout:
        result = await action(options)
        if predicate(result):
            return result
        await sleep(delay)
        total_sleep += delay
        delay += DELAY_INCREMENT
    raise UntilTimeoutError(timeout)


def uid(prefix: Optional[str] = None, digits: int = 6) -> str:
    """Generate a random numeric id, optionally as ``<prefix>_<id>``."""
    digits = min(max(digits, 1), 16)
    value = random.randrange(10**digits)
    return f"{value}" if prefix is None else f"{prefix}_{value}"


def iuid() -> str:
    return uid(None, 12)


def is_hash(value: str) -> bool:
    return re.search(r"[A-Fa-f0-9]{64}$", value) is not None


def to_csv(values: List[Any]) -> str:
    return ",".join(str(value) for value in values)


def filter_is_contained(
    set_a: List[T], set_b: List[Any], comparator: Callable[[T, Any], bool]
) -> List[T]:
    """Members of ``set_a`` that match no member of ``set_b``."""
    return [a for a in set_a if not any(comparator(a, b) for b in set_b)]


class UntilTimeoutError(Exception):
    """The predicate passed to until() never accepted a result in time"""

    timeout: int

    def __init__(self, timeout: int):
        super().__init__(f"until: timeout {timeout} ms exceeded")
        self.timeout = timeout


class Test(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        patcher = unittest.mock.patch(
            "strato_sdk.util.sleep", new_callable=unittest.mock.AsyncMock
        )
        self.sleep = patcher.start()
        self.addCleanup(patcher.stop)

    async def test_immediate_success_does_not_sleep(self):
        action = unittest.mock.AsyncMock(return_value="done")

        result = await until(lambda r: r == "done", action, "options", 1_000_000)

        self.assertEqual(result, "done")
        action.assert_awaited_once_with("options")
        self.sleep.assert_not_awaited()

    async def test_sixth_attempt_succeeds(self):
        action = unittest.mock.AsyncMock(side_effect=list(range(1, 10)))

        result = await until(lambda r: r == 6, action)

        self.assertEqual(result, 6)
        self.assertEqual(action.await_count, 6)
        delays = [call.args[0] for call in self.sleep.await_args_list]
        self.assertEqual(delays, [500, 510, 520, 530, 540])

    async def test_timeout(self):
        action = unittest.mock.AsyncMock(return_value=[])

        with self.assertRaises(UntilTimeoutError) as cm:
            await until(lambda r: len(r) > 0, action, None, 1000)

        self.assertIn("timeout 1000 ms exceeded", str(cm.exception))
        self.assertEqual(cm.exception.timeout, 1000)
        # 500 + 510 reaches the budget
        self.assertEqual(action.await_count, 2)

    async def test_action_error_is_not_retried(self):
        action = unittest.mock.AsyncMock(side_effect=ValueError("boom"))

        with self.assertRaises(ValueError):
            await until(lambda r: True, action)

        self.assertEqual(action.await_count, 1)
        self.sleep.assert_not_awaited()

    async def test_default_timeout_message(self):
        action = unittest.mock.AsyncMock(return_value=False)

        with self.assertRaisesRegex(UntilTimeoutError, "timeout 60000 ms exceeded"):
            await until(bool, action)


class HelpersTest(unittest.TestCase):
    def test_uid(self):
        self.assertTrue(uid().isdigit())
        self.assertTrue(uid("user").startswith("user_"))
        self.assertLessEqual(len(iuid()), 12)

    def test_is_hash(self):
        self.assertTrue(is_hash("ab" * 32))
        self.assertFalse(is_hash("xyz"))

    def test_to_csv(self):
        self.assertEqual(to_csv([1, 2, 3, 4]), "1,2,3,4")
        self.assertEqual(to_csv([]), "")

    def test_filter_is_contained(self):
        list_a = [{"username": "user1"}, {"username": "user2"}, {"username": "user3"}]
        list_b = [{"username": "user2"}]
        result = filter_is_contained(
            list_a, list_b, lambda a, b: a["username"] == b["username"]
        )
        self.assertEqual(result, [{"username": "user1"}, {"username": "user3"}])
