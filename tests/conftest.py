# conftest.py - in-process stand-in for MPI.COMM_WORLD
#
# Each rank runs in its own thread. Send copies the buffer into a FIFO queue
# per (source, dest, tag), Recv blocks on that queue. This is the subset of the
# mpi4py buffer interface the DNS pipeline uses.

import queue
import threading
from collections import Counter

import numpy as np
import pytest

RECV_TIMEOUT = 30    # seconds; a missing Send fails the test instead of hanging it


class ThreadWorld:
    def __init__(self, size):
        self.size = size
        self._lock = threading.Lock()
        self._queues = {}
        self.sends = Counter()          # rank -> messages sent
        self.recvs = Counter()          # rank -> messages received
        self.messages = Counter()       # (source, dest) -> messages

    def channel(self, source, dest, tag):
        with self._lock:
            key = (source, dest, tag)
            if key not in self._queues:
                self._queues[key] = queue.Queue()
            return self._queues[key]

    def comm(self, rank):
        return ThreadComm(self, rank)

    @property
    def total_messages(self):
        return sum(self.sends.values())


class ThreadComm:
    def __init__(self, world, rank):
        self.world = world
        self.rank = rank

    def Get_rank(self):
        return self.rank

    def Get_size(self):
        return self.world.size

    def Send(self, buf, dest, tag=0):
        assert 0 <= dest < self.world.size, f"{self.rank}: bad destination {dest}"
        data = np.array(buf, copy=True)
        with self.world._lock:
            self.world.sends[self.rank] += 1
            self.world.messages[(self.rank, dest)] += 1
        self.world.channel(self.rank, dest, tag).put(data)

    def Recv(self, buf, source, tag=0):
        try:
            data = self.world.channel(source, self.rank, tag).get(timeout=RECV_TIMEOUT)
        except queue.Empty:
            raise TimeoutError(f"{self.rank}: no message from {source} (tag {tag})") from None

        assert data.size == buf.size, f"{self.rank}: got {data.size} values from {source}, buffer holds {buf.size}"
        assert data.dtype == buf.dtype, f"{self.rank}: got {data.dtype} from {source}, buffer is {buf.dtype}"
        np.copyto(buf, data.reshape(buf.shape))
        with self.world._lock:
            self.world.recvs[self.rank] += 1


def run_ranks(size, target):
    """
    Run target(comm) on `size` threads, one per rank.

    Returns (world, results) with results[rank] the return value. The first
    exception raised by any rank is re-raised after every thread finishes.
    """
    world = ThreadWorld(size)
    results = [None] * size
    errors = [None] * size

    def work(rank):
        try:
            results[rank] = target(world.comm(rank))
        except BaseException as e:
            errors[rank] = e

    threads = [threading.Thread(target=work, args=(rank,), daemon=True) for rank in range(size)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=RECV_TIMEOUT * 4)
        assert not t.is_alive(), "rank thread did not finish"

    for e in errors:
        if e is not None:
            raise e

    return world, results


@pytest.fixture
def ranks():
    return run_ranks


@pytest.fixture
def rng():
    return np.random.default_rng(0)   # Reproducibility
