# utilities.py - diagnostics for the DNS processes

import os
import sys

import psutil         # for memory usage


def report(rank, msg, file=None):
    # Diagnostics never go to stdout, which only carries the product
    print(f"{rank}: {msg}", file=file or sys.stderr, flush=True)

def get_memory_usage():
    # Prefer USS (unique set size) or PSS (proportional set size); fall back to rss
    proc = psutil.Process(os.getpid())
    try:
        mem_full = proc.memory_full_info()
    except psutil.Error:
        return proc.memory_info().rss, "RSS"

    uss = getattr(mem_full, "uss", None)
    if uss:
        return uss, "USS"
    pss = getattr(mem_full, "pss", None)
    if pss:
        return pss, "PSS"
    return mem_full.rss, "RSS"

def format_bytes(nbytes):
    return f"{nbytes / 1024**2:.2f} MB"


class Stopwatch:
    # Elapsed wall time since creation, on MPI.Wtime unless another timer is given
    def __init__(self, timer_fn=None):
        if timer_fn is None:
            from mpi4py import MPI
            timer_fn = MPI.Wtime
        self.timer_fn = timer_fn
        self.t0 = timer_fn()

    def elapsed(self):
        return self.timer_fn() - self.t0
