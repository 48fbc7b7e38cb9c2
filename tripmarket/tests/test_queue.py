import unittest
from unittest.mock import patch

from redis import exceptions as redis_exceptions

from tripmarket.queue import InMemoryJobQueue, RedisJobQueue


class InMemoryJobQueueTests(unittest.TestCase):
    def test_fifo_and_empty_timeout(self):
        queue = InMemoryJobQueue()
        queue.enqueue("a")
        queue.enqueue("b")
        self.assertEqual(len(queue), 2)
        self.assertEqual(queue.dequeue(block=False), "a")
        self.assertEqual(queue.dequeue(timeout=1), "b")
        self.assertIsNone(queue.dequeue(block=True, timeout=0.01))


class RedisJobQueueTests(unittest.TestCase):
    @patch("tripmarket.queue.redis.Redis.from_url")
    def test_push_and_pop(self, from_url):
        client = from_url.return_value
        queue = RedisJobQueue(url="redis://localhost:6379/0", queue_key="plans")
        queue.enqueue("p1")
        client.rpush.assert_called_once_with("plans", "p1")

        client.blpop.return_value = (b"plans", b"p1")
        self.assertEqual(queue.dequeue(timeout=5), "p1")
        client.blpop.assert_called_once_with("plans", timeout=5)

        client.lpop.return_value = None
        self.assertIsNone(queue.dequeue(block=False))

    @patch("tripmarket.queue.redis.Redis.from_url")
    def test_reconnects_after_connection_error(self, from_url):
        queue = RedisJobQueue(url="redis://localhost:6379/0")
        from_url.return_value.blpop.side_effect = redis_exceptions.ConnectionError("reset")
        self.assertIsNone(queue.dequeue(timeout=1))
        self.assertEqual(from_url.call_count, 2)


if __name__ == "__main__":
    unittest.main()
