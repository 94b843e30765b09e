# source.py - line-oriented integer matrix sources

import io
import os
import re

import numpy as np

from dnsmat.errors import SourceError

# Plain ASCII decimal integers only, no "1_000" or non-ASCII digits
INTEGER_TOKEN = re.compile(r"[+-]?[0-9]+")


def parse_row(line: str, line_number: int, name="matrix") -> np.ndarray:
    tokens = line.split()
    for token in tokens:
        if INTEGER_TOKEN.fullmatch(token) is None:
            raise SourceError(f"{name}, line {line_number}: not an integer: {token!r}")
    try:
        values = [int(token) for token in tokens]
        return np.array(values, dtype=np.int64)
    except (ValueError, OverflowError) as e:
        raise SourceError(f"{name}, line {line_number}: {e}") from e


################################################################################
class MatrixSource:
################################################################################
    """
    A square integer matrix stored as text: N lines of N whitespace-separated
    integers.

    The source is read lazily, one row at a time, and can be read any number of
    times. `opener` is called for every pass and must return a fresh iterable
    of text lines (an open file, a socket file object, a generator, ...).
    Blank lines are skipped.
    """

    def __init__(self, opener, name="matrix"):
        if not callable(opener):
            raise TypeError("opener must be callable")
        self.opener = opener
        self.name = name

    def __repr__(self):
        return f"MatrixSource({self.name!r})"

    @staticmethod
    def from_path(path) -> 'MatrixSource':
        path = os.fspath(path)

        def opener():
            try:
                return open(path, "r", encoding="utf-8")
            except OSError as e:
                raise SourceError(f"{path}: cannot open ({e.strerror or e})") from e

        return MatrixSource(opener, name=path)

    @staticmethod
    def from_text(text: str, name="<text>") -> 'MatrixSource':
        return MatrixSource(lambda: io.StringIO(text), name=name)

    @staticmethod
    def from_rows(rows, name="<rows>") -> 'MatrixSource':
        # rows: anything np.asarray turns into a 2D integer array
        matrix = np.atleast_2d(np.asarray(rows, dtype=np.int64))
        return MatrixSource.from_text(format_matrix(matrix), name=name)

    ############################################################################
    # Reading
    ############################################################################
    def _lines(self):
        handle = self.opener()
        line_number = 0
        try:
            for line_number, line in enumerate(handle, start=1):
                if line.strip():
                    yield line_number, line
        except UnicodeDecodeError as e:
            raise SourceError(f"{self.name}, line {line_number + 1}: not valid text ({e.reason})") from e
        except OSError as e:
            raise SourceError(f"{self.name}: read failed ({e})") from e
        finally:
            close = getattr(handle, "close", None)
            if close is not None:
                close()

    def rows(self):
        """
        Yield (row_index, row) for every row, checking that the matrix is square.
        """
        size = None
        count = 0
        for line_number, line in self._lines():
            row = parse_row(line, line_number, self.name)

            if size is None:
                size = row.shape[0]
            elif row.shape[0] != size:
                raise SourceError(f"{self.name}, line {line_number}: expected {size} values, got {row.shape[0]}")

            if count >= size:
                raise SourceError(f"{self.name}, line {line_number}: more than {size} rows in a {size}x{size} matrix")

            yield count, row
            count += 1

        if size is None:
            raise SourceError(f"{self.name}: no rows")
        if count != size:
            raise SourceError(f"{self.name}: expected {size} rows, got {count}")

    def size(self) -> int:
        # N is the number of values in the first row; only that row is read
        lines = self._lines()
        try:
            for line_number, line in lines:
                return parse_row(line, line_number, self.name).shape[0]
        finally:
            lines.close()
        raise SourceError(f"{self.name}: no rows")


############################################################################
# Writing
############################################################################

def format_row(row) -> str:
    return " ".join(str(int(v)) for v in row)

def format_matrix(matrix) -> str:
    return "".join(format_row(row) + "\n" for row in matrix)

def write_matrix(destination, matrix):
    # destination is a path or a text stream
    matrix = np.atleast_2d(np.asarray(matrix, dtype=np.int64))
    if hasattr(destination, "write"):
        destination.write(format_matrix(matrix))
    else:
        with open(destination, "w") as f:
            f.write(format_matrix(matrix))
