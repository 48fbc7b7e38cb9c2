import unittest

from tripmarket.resilience import CircuitBreaker, RetryPolicy, call_with_retries


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class RetryTests(unittest.TestCase):
    def test_delays_grow_exponentially_and_cap(self):
        policy = RetryPolicy(max_attempts=5, initial_delay=1.0, max_delay=5.0)
        self.assertEqual([policy.delay_for(n) for n in range(1, 5)], [1.0, 2.0, 4.0, 5.0])

    def test_only_listed_errors_are_retried(self):
        calls = []

        def fn():
            calls.append(1)
            raise KeyError("no")

        with self.assertRaises(KeyError):
            call_with_retries(fn, RetryPolicy(), retry_on=(ValueError,), sleep=lambda _: None)
        self.assertEqual(len(calls), 1)

    def test_returns_first_success(self):
        outcomes = [ValueError("a"), ValueError("b"), "ok"]

        def fn():
            result = outcomes.pop(0)
            if isinstance(result, Exception):
                raise result
            return result

        delays = []
        self.assertEqual(
            call_with_retries(fn, RetryPolicy(initial_delay=0.5), retry_on=(ValueError,), sleep=delays.append),
            "ok",
        )
        self.assertEqual(delays, [0.5, 1.0])


class CircuitBreakerTests(unittest.TestCase):
    def test_opens_at_threshold_and_resets_after_timeout(self):
        clock = FakeClock()
        breaker = CircuitBreaker(threshold=3, reset_timeout=60, clock=clock)
        breaker.record_failure()
        breaker.record_failure()
        self.assertFalse(breaker.is_open())
        breaker.record_failure()
        self.assertTrue(breaker.is_open())
        self.assertFalse(breaker.allow())

        clock.now = 59.0
        self.assertTrue(breaker.is_open())
        clock.now = 60.0
        self.assertFalse(breaker.is_open())

    def test_success_closes_breaker(self):
        clock = FakeClock()
        breaker = CircuitBreaker(threshold=1, reset_timeout=60, clock=clock)
        breaker.record_failure()
        self.assertTrue(breaker.is_open())
        breaker.record_success()
        self.assertFalse(breaker.is_open())
        self.assertEqual(breaker.failures, 0)


if __name__ == "__main__":
    unittest.main()
