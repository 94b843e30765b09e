# dns.py - one process of the DNS (Dekel-Nassimi-Sahni) matrix multiplication

from enum import Enum

from dnsmat.gather import send_result_rows, gather_rows, emit_rows
from dnsmat.multiply import select_multiply
from dnsmat.placement import acquire_blocks
from dnsmat.reduce import reduce_partial_products
from dnsmat.errors import SourceError
from dnsmat.topology import pcube, block_size
from dnsmat.utilities import report, get_memory_usage, format_bytes, Stopwatch


class Phase(Enum):
    INIT = 0
    PLACE = 1
    COMPUTE = 2
    REDUCE = 3
    GATHER = 4
    EMIT = 5
    DONE = 6
    SHUTDOWN = 7


################################################################################
class DNSProcess:
################################################################################
    """
    State machine for one rank:

        INIT -> PLACE -> COMPUTE -> REDUCE -> [GATHER -> EMIT] -> DONE -> SHUTDOWN

    GATHER and EMIT only run on the coordinator. Phases only move forward.

    `comm` is an mpi4py communicator, or anything with Get_rank, Get_size,
    Send(buf, dest, tag) and Recv(buf, source, tag).
    """

    def __init__(self, comm, multiply="auto", verbose=False, timer_fn=None):
        self.comm = comm
        self.rank = comm.Get_rank()
        self.verbose = verbose
        self.multiply = multiply
        self.phase = Phase.INIT

        # Raises ConfigurationError on every rank alike, before any I/O
        self.cube = pcube(comm.Get_size(), self.rank)

        self.size = None
        self.part_size = None
        self.A_block = None
        self.B_block = None
        self.product = None
        self.result = None
        self.rows_emitted = 0

        # Only timed when reporting progress
        self._stopwatch = Stopwatch(timer_fn) if verbose else None

    def __repr__(self):
        return f"DNSProcess(rank {self.rank} at {self.cube.coords}, phase {self.phase.name})"

    def _enter(self, phase):
        if phase.value <= self.phase.value:
            raise RuntimeError(f"{self.cube.coords}: cannot go from {self.phase.name} to {phase.name}")
        if phase in (Phase.GATHER, Phase.EMIT) and not self.cube.is_coordinator:
            raise RuntimeError(f"{self.cube.coords}: only the coordinator enters {phase.name}")
        self.phase = phase

    def _progress(self, msg):
        if self.verbose:
            report(self.rank, msg)

    ############################################################################
    # Phases
    ############################################################################
    def resolve_size(self, source_a, source_b):
        # Every rank reads N itself instead of waiting for a broadcast
        size = source_a.size()
        size_b = source_b.size()
        if size_b != size:
            raise SourceError(f"{source_a.name} is {size}x{size} but {source_b.name} is {size_b}x{size_b}")

        self.part_size = block_size(size, self.cube.n)
        self.size = size
        return size

    def place(self, source_a, source_b):
        if self.size is None:
            self.resolve_size(source_a, source_b)
        self._enter(Phase.PLACE)

        self.A_block, self.B_block = acquire_blocks(self.cube, source_a, source_b, self.size)
        self._progress("Finished placement.")

    def compute(self):
        self._enter(Phase.COMPUTE)

        multiply = select_multiply(self.multiply, self.part_size)
        self.product = multiply(self.A_block, self.B_block)

        # Operand blocks are no longer needed
        self.A_block = self.B_block = None
        self._progress("Finished multiply.")

    def reduce(self):
        self._enter(Phase.REDUCE)

        self.result = reduce_partial_products(self.comm, self.cube, self.product)
        self.product = None

        if self.cube.is_reducer:
            self._progress("Finished sum.")
            if not self.cube.is_coordinator:
                send_result_rows(self.comm, self.cube, self.result)
                self.result = None
                self._progress("Finished final send.")
        else:
            self._progress("Finished final send.")

    def gather_and_emit(self, out):
        self._enter(Phase.GATHER)
        rows = gather_rows(self.comm, self.cube, self.result, self.part_size)

        self._enter(Phase.EMIT)
        self.rows_emitted = emit_rows(rows, out)
        self.result = None
        self._progress("Finished final recv.")

    def finish(self):
        self._enter(Phase.DONE)
        if self.verbose:
            mem_bytes, mem_label = get_memory_usage()
            report(self.rank, f"Done in {self._stopwatch.elapsed():.3f} sec, {mem_label} {format_bytes(mem_bytes)}")

    def shutdown(self):
        # mpi4py finalizes MPI itself at interpreter exit
        self._enter(Phase.SHUTDOWN)

    ############################################################################
    # Whole run
    ############################################################################
    def run(self, source_a, source_b, out):
        self.place(source_a, source_b)
        self.compute()
        self.reduce()
        if self.cube.is_coordinator:
            self.gather_and_emit(out)
        self.finish()
        self.shutdown()
        return self.rows_emitted


def dns_matmul(comm, source_a, source_b, out, multiply="auto", verbose=False, timer_fn=None):
    # Run this rank's share of out = A @ B. Returns the number of rows written (0 off the coordinator)
    return DNSProcess(comm, multiply=multiply, verbose=verbose, timer_fn=timer_fn).run(source_a, source_b, out)
