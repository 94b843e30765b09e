# topology.py - process cube for the DNS algorithm

from dnsmat.errors import ConfigurationError

# P = n^3 processes; only these cube sizes are supported
ALLOWED_PROCESS_COUNTS = (8, 64)

# The coordinator gathers and prints the result. It is also the reducer of group (0, 0)
COORDINATOR = 0


def grid_side(num_procs: int) -> int:
    """
    Side n of the process cube for num_procs = n^3 processes.

    Every process calls this with its own comm.Get_size() and reaches the same
    answer without talking to anyone, so all of them abort together on a bad
    process count.
    """
    if num_procs not in ALLOWED_PROCESS_COUNTS:
        allowed = ", ".join(str(p) for p in ALLOWED_PROCESS_COUNTS)
        raise ConfigurationError(f"Wrong number of processes: {num_procs} (expected one of {allowed})")

    n = round(num_procs ** (1 / 3))
    assert n ** 3 == num_procs, f"{num_procs} is not a cube"
    return n

def block_size(size: int, n: int) -> int:
    # partSize = N / n, exact
    if size <= 0:
        raise ConfigurationError(f"Matrix size must be positive, got {size}")
    part_size, rem = divmod(size, n)
    if rem != 0:
        raise ConfigurationError(f"Matrix size {size} is not divisible by grid side {n}")
    return part_size


################################################################################
class pcube:
################################################################################
    """
    Position of one process in the n x n x n cube.

    rank = i * n^2 + j * n + k

    Process (i, j, k) holds A-block (i, k) and B-block (k, j). The n processes
    that share (i, j) form a reduction group whose k = 0 member is the reducer.
    """

    def __init__(self, num_procs, rank):
        self.num_procs = num_procs
        self.n = grid_side(num_procs)

        if not 0 <= rank < num_procs:
            raise ValueError(f"rank {rank} outside [0, {num_procs})")

        self.rank = rank
        self.coords = self.coords_of(rank)

    def __repr__(self):
        return f"pcube(n={self.n}) rank {self.rank} at coords {self.coords}"

    ############################################################################
    # Rank <-> coordinates
    ############################################################################
    def rank_of(self, i, j, k):
        n = self.n
        for digit in (i, j, k):
            if not 0 <= digit < n:
                raise ValueError(f"coordinate {(i, j, k)} outside cube of side {n}")
        return (i * n + j) * n + k

    def coords_of(self, rank):
        n = self.n
        ij, k = divmod(rank, n)
        i, j = divmod(ij, n)
        return (i, j, k)

    ############################################################################
    # Reduction groups
    ############################################################################
    @property
    def reducer(self):
        i, j, _ = self.coords
        return self.rank_of(i, j, 0)

    @property
    def is_reducer(self):
        return self.coords[2] == 0

    @property
    def is_coordinator(self):
        return self.rank == COORDINATOR

    @property
    def group_members(self):
        # Ranks sharing (i, j), ordered by k
        i, j, _ = self.coords
        return [self.rank_of(i, j, k) for k in range(self.n)]

    def reducers(self):
        # (i, j) -> rank of the reducer holding ResultBlock(i, j)
        return {(i, j): self.rank_of(i, j, 0) for i in range(self.n) for j in range(self.n)}

    ############################################################################
    # Block placement
    ############################################################################
    def a_owner(self, row_block, col_block, third):
        # A-block (row_block, col_block) goes to one process per j = third
        return self.rank_of(row_block, third, col_block)

    def b_owner(self, row_block, col_block, third):
        # B-block (row_block, col_block) goes to one process per i = third
        return self.rank_of(third, col_block, row_block)

    @property
    def a_block(self):
        # (row_block, col_block) of the A-block owned here
        i, _, k = self.coords
        return (i, k)

    @property
    def b_block(self):
        _, j, k = self.coords
        return (k, j)
