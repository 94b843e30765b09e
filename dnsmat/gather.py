# gather.py - stream result blocks to the coordinator and print them

import numpy as np

from dnsmat.reduce import TAG
from dnsmat.source import format_row
from dnsmat.topology import pcube, COORDINATOR


def send_result_rows(comm, cube: pcube, result: np.ndarray):
    # One message per block row, top to bottom
    assert cube.is_reducer and not cube.is_coordinator, f"{cube.coords} does not send a result block"

    for row in result:
        comm.Send(np.ascontiguousarray(row, dtype=np.int64), dest=COORDINATOR, tag=TAG)

def gather_rows(comm, cube: pcube, result: np.ndarray, part_size):
    """
    GATHER on the coordinator: yield global rows of the product in order.

    Only one row of the product is held at a time (plus the local block
    (0, 0)). For global row r in block row i, the segment of block column j
    comes from the local block if (i, j) == (0, 0), else from one message of
    part_size values from the reducer of (i, j).
    """
    assert cube.is_coordinator, f"{cube.coords} is not the coordinator"

    n = cube.n
    reducers = cube.reducers()

    for global_row in range(n * part_size):
        i, local_row = divmod(global_row, part_size)

        segments = []
        for j in range(n):
            if (i, j) == (0, 0):
                segments.append(result[local_row])
            else:
                segment = np.empty(part_size, dtype=np.int64)
                comm.Recv(segment, source=reducers[(i, j)], tag=TAG)
                segments.append(segment)

        yield np.concatenate(segments)

def emit_rows(rows, out):
    # EMIT: one line per row, values separated by single spaces
    count = 0
    for row in rows:
        out.write(format_row(row) + "\n")
        count += 1
    out.flush()
    return count
