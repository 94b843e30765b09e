# reduce.py - sum partial products over k inside each (i, j) group

import numpy as np

from dnsmat.topology import pcube

# One tag for every message. Per-pair FIFO order pairs sends with receives
TAG = 1


def reduce_partial_products(comm, cube: pcube, product: np.ndarray):
    """
    REDUCE: ResultBlock(i, j) = sum over k of PartialProduct(i, j, k).

    Non-reducers send their product to (i, j, 0) and return None. The reducer
    adds its own product to the n - 1 it receives and returns the sum.
    """
    if not cube.is_reducer:
        comm.Send(np.ascontiguousarray(product, dtype=np.int64), dest=cube.reducer, tag=TAG)
        return None

    result = np.array(product, dtype=np.int64, copy=True)

    for source in cube.group_members[1:]:
        # Fresh buffer for every message
        buffer = np.empty(result.shape, dtype=np.int64)
        comm.Recv(buffer, source=source, tag=TAG)
        result += buffer

    return result
