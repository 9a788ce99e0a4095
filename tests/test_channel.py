import threading
import unittest

from jobsim.channel import QueueClosedError, WorkerQueue
from jobsim.models import Terminate, WorkItem


class WorkerQueueTest(unittest.TestCase):
    def test_fifo_delivery(self) -> None:
        queue = WorkerQueue("worker0")
        for index in range(5):
            queue.put(WorkItem(name=f"job{index}", load=1.0))
        queue.put(Terminate())
        received = [queue.get() for _ in range(6)]
        self.assertEqual([job.name for job in received[:5]], [f"job{i}" for i in range(5)])
        self.assertIsInstance(received[-1], Terminate)
        self.assertEqual(queue.sent, 6)

    def test_get_blocks_until_put(self) -> None:
        queue = WorkerQueue("worker0")
        received = []
        consumer = threading.Thread(target=lambda: received.append(queue.get()))
        consumer.start()
        consumer.join(timeout=0.05)
        self.assertTrue(consumer.is_alive())
        queue.put(WorkItem(name="job0", load=1.0))
        consumer.join(timeout=5)
        self.assertFalse(consumer.is_alive())
        self.assertEqual(received[0].name, "job0")

    def test_put_after_close_fails(self) -> None:
        queue = WorkerQueue("worker0")
        queue.close()
        self.assertTrue(queue.closed)
        with self.assertRaises(QueueClosedError):
            queue.put(WorkItem(name="job0", load=1.0))

    def test_abort_wakes_consumer_after_close(self) -> None:
        queue = WorkerQueue("worker0")
        queue.close()
        queue.abort()
        self.assertIsInstance(queue.get(), Terminate)


if __name__ == "__main__":
    unittest.main()
