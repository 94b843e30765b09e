# multiply.py - local block multiplication

import numpy as np
from numba import njit      # nopython mode

from dnsmat.placement import split_blocks, join_blocks

# Recursive multiply splits into quadrants until blocks are this small
RECURSIVE_LEAF_SIZE = 32

# "auto" only recurses on blocks at least this large
RECURSIVE_THRESHOLD = 256


@njit  # compile into machine code
def _matmat(A, B, C):
    n = A.shape[0]
    for i in range(n):
        for j in range(n):
            val = A[i, j]
            for k in range(n):
                C[i, k] += val * B[j, k]


def multiply_loops(A_block: np.ndarray, B_block: np.ndarray) -> np.ndarray:
    # Triple loop; int64 overflow wraps
    _check_blocks(A_block, B_block)
    A = np.ascontiguousarray(A_block, dtype=np.int64)
    B = np.ascontiguousarray(B_block, dtype=np.int64)
    C = np.zeros_like(A)
    _matmat(A, B, C)
    return C

def multiply_recursive(A_block: np.ndarray, B_block: np.ndarray, leaf_size=RECURSIVE_LEAF_SIZE) -> np.ndarray:
    """
    Divide and conquer on 2 x 2 quadrants:

        C[r][c] = A[r][0] @ B[0][c] + A[r][1] @ B[1][c]

    Odd-sized blocks, and blocks no larger than leaf_size, go straight to the
    triple loop.
    """
    _check_blocks(A_block, B_block)
    size = A_block.shape[0]

    if size <= max(leaf_size, 1) or size % 2 != 0:
        return multiply_loops(A_block, B_block)

    qa = split_blocks(A_block, 2)
    qb = split_blocks(B_block, 2)

    qc = [[None, None], [None, None]]
    for row in range(2):
        for col in range(2):
            qc[row][col] = sum(multiply_recursive(qa[row][i], qb[i][col], leaf_size) for i in range(2))

    return np.ascontiguousarray(join_blocks(qc), dtype=np.int64)

def multiply_numpy(A_block: np.ndarray, B_block: np.ndarray) -> np.ndarray:
    _check_blocks(A_block, B_block)
    return np.matmul(A_block.astype(np.int64), B_block.astype(np.int64))


MULTIPLY_METHODS = {
    "loops": multiply_loops,
    "recursive": multiply_recursive,
    "numpy": multiply_numpy,
}

def select_multiply(name, part_size):
    if name == "auto":
        if part_size >= RECURSIVE_THRESHOLD and part_size % 2 == 0:
            return multiply_recursive
        return multiply_loops

    try:
        return MULTIPLY_METHODS[name]
    except KeyError:
        raise ValueError(f"multiply must be one of 'auto', {', '.join(repr(m) for m in MULTIPLY_METHODS)}") from None


def _check_blocks(A_block, B_block):
    assert A_block.ndim == 2 and A_block.shape[0] == A_block.shape[1], f"A block must be square, got {A_block.shape}"
    assert A_block.shape == B_block.shape, f"A block {A_block.shape} != B block {B_block.shape}"
