# placement.py - which process holds which block, and how it gets there

import numpy as np

from dnsmat.errors import SourceError
from dnsmat.topology import pcube


def block_bounds(index, part_size):
    # Global [start, end) of block row (or column) `index`
    return index * part_size, (index + 1) * part_size


def read_block(source, row_block, col_block, part_size, size) -> np.ndarray:
    """
    Stream `source` and keep only block (row_block, col_block).

    Every row of the source is parsed and checked, including the ones that are
    thrown away, so each process reading the same source fails the same way on
    bad input.
    """
    row_start, row_end = block_bounds(row_block, part_size)
    col_start, col_end = block_bounds(col_block, part_size)

    block = np.empty((part_size, part_size), dtype=np.int64)

    for row_index, row in source.rows():
        if row.shape[0] != size:
            raise SourceError(f"{source.name}: expected a {size}x{size} matrix, got {row.shape[0]} columns")

        if row_start <= row_index < row_end:
            block[row_index - row_start] = row[col_start:col_end]

    # rows() has checked the row count against the row width
    return block


def acquire_blocks(cube: pcube, source_a, source_b, size):
    """
    PLACE: read the A-block (i, k) and the B-block (k, j) owned by this process.

    No messages are exchanged. Each process reads both sources itself.
    """
    part_size = size // cube.n

    a_row, a_col = cube.a_block
    b_row, b_col = cube.b_block

    A_block = read_block(source_a, a_row, a_col, part_size, size)
    B_block = read_block(source_b, b_row, b_col, part_size, size)

    return A_block, B_block


############################################################################
# Whole-matrix helpers
############################################################################

def split_blocks(matrix: np.ndarray, n) -> list:
    # n x n nested list of (size/n x size/n) blocks
    size = matrix.shape[0]
    assert matrix.shape == (size, size), f"matrix must be square, got {matrix.shape}"
    assert size % n == 0, f"{size} not divisible by {n}"

    part_size = size // n
    blocks = []
    for row in range(n):
        r0, r1 = block_bounds(row, part_size)
        blocks.append([np.ascontiguousarray(matrix[r0:r1, c0:c1])
                       for c0, c1 in (block_bounds(col, part_size) for col in range(n))])
    return blocks

def join_blocks(blocks) -> np.ndarray:
    # Inverse of split_blocks
    return np.block([[np.asarray(b) for b in row] for row in blocks])
