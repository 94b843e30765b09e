"""
main.py

    mpiexec -n 8 dnsmat A.txt B.txt > C.txt

Every rank reads both matrix files, multiplies its blocks, and the product is
printed by rank 0. Process counts other than 8 or 64 are rejected by every
rank before anything is read.
"""

import argparse
import sys

from dnsmat import __version__
from dnsmat.dns import dns_matmul
from dnsmat.errors import ConfigurationError, SourceError
from dnsmat.multiply import MULTIPLY_METHODS
from dnsmat.source import MatrixSource
from dnsmat.utilities import report

EXIT_CONFIGURATION_ERROR = 1
EXIT_SOURCE_ERROR = 2


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="dnsmat",
        description="Multiply two square integer matrices with the DNS algorithm on 8 or 64 MPI processes"
    )
    parser.add_argument("matrix_a", help="Text file with the left matrix (N lines of N integers)")
    parser.add_argument("matrix_b", help="Text file with the right matrix")
    parser.add_argument("--multiply", choices=["auto"] + list(MULTIPLY_METHODS), default="auto",
                        help="Local block multiplication")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Report progress of every rank on stderr")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)

def main(argv=None, comm=None, out=None, timer_fn=None):
    args = parse_args(argv)

    if comm is None:
        from mpi4py import MPI
        comm = MPI.COMM_WORLD
    if out is None:
        out = sys.stdout

    rank = comm.Get_rank()

    try:
        dns_matmul(comm,
                   MatrixSource.from_path(args.matrix_a),
                   MatrixSource.from_path(args.matrix_b),
                   out,
                   multiply=args.multiply,
                   verbose=args.verbose,
                   timer_fn=timer_fn)
    except ConfigurationError as e:
        report(rank, f"configuration error: {e}")
        return EXIT_CONFIGURATION_ERROR
    except SourceError as e:
        report(rank, f"source error: {e}")
        return EXIT_SOURCE_ERROR

    return 0
