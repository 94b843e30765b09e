# test_main.py - command line entry point

import io
import os
import shutil
import subprocess
import sys
import time

import numpy as np
import pytest

from dnsmat.main import main, parse_args, EXIT_CONFIGURATION_ERROR, EXIT_SOURCE_ERROR
from dnsmat.source import write_matrix


@pytest.fixture
def matrix_files(tmp_path):
    A = np.eye(4, dtype=np.int64)
    B = np.arange(1, 17, dtype=np.int64).reshape(4, 4)
    path_a, path_b = tmp_path / "a.txt", tmp_path / "b.txt"
    write_matrix(path_a, A)
    write_matrix(path_b, B)
    return str(path_a), str(path_b)


def test_parse_args():
    args = parse_args(["a.txt", "b.txt"])
    assert (args.matrix_a, args.matrix_b) == ("a.txt", "b.txt")
    assert args.multiply == "auto"
    assert not args.verbose

    args = parse_args(["--multiply", "recursive", "-v", "a.txt", "b.txt"])
    assert args.multiply == "recursive"
    assert args.verbose

def test_parse_args_needs_two_sources():
    with pytest.raises(SystemExit):
        parse_args(["a.txt"])


def test_main_prints_product(ranks, matrix_files):
    outputs = [io.StringIO() for _ in range(8)]

    world, codes = ranks(8, lambda comm: main(list(matrix_files), comm=comm, out=outputs[comm.Get_rank()]))

    assert codes == [0] * 8
    assert outputs[0].getvalue() == "1 2 3 4\n5 6 7 8\n9 10 11 12\n13 14 15 16\n"
    assert all(out.getvalue() == "" for out in outputs[1:])

def test_main_verbose_reports_on_stderr(ranks, matrix_files, capsys):
    outputs = [io.StringIO() for _ in range(8)]

    _, codes = ranks(8, lambda comm: main(["-v", *matrix_files], comm=comm, out=outputs[comm.Get_rank()],
                                         timer_fn=time.perf_counter))

    assert codes == [0] * 8
    err = capsys.readouterr().err
    assert err.count("Finished placement.") == 8
    assert err.count("Finished multiply.") == 8
    assert "0: Finished final recv." in err
    assert err.count("Done in") == 8

def test_unsupported_process_count(ranks, tmp_path, capsys):
    # Sources do not exist: the process count is rejected before any I/O
    argv = [str(tmp_path / "missing_a.txt"), str(tmp_path / "missing_b.txt")]

    world, codes = ranks(16, lambda comm: main(argv, comm=comm, out=io.StringIO()))

    assert codes == [EXIT_CONFIGURATION_ERROR] * 16
    assert world.total_messages == 0
    assert sum(world.recvs.values()) == 0

    err = capsys.readouterr().err.splitlines()
    assert len(err) == 16
    assert all("configuration error: Wrong number of processes: 16" in line for line in err)

def test_missing_source(ranks, tmp_path, matrix_files, capsys):
    argv = [matrix_files[0], str(tmp_path / "missing.txt")]

    world, codes = ranks(8, lambda comm: main(argv, comm=comm, out=io.StringIO()))

    assert codes == [EXIT_SOURCE_ERROR] * 8
    assert world.total_messages == 0
    assert capsys.readouterr().err.count("source error") == 8

def test_size_not_divisible(ranks, tmp_path):
    path = tmp_path / "odd.txt"
    write_matrix(path, np.ones((5, 5), dtype=np.int64))

    _, codes = ranks(8, lambda comm: main([str(path), str(path)], comm=comm, out=io.StringIO()))

    assert codes == [EXIT_CONFIGURATION_ERROR] * 8


@pytest.mark.skipif(shutil.which("mpiexec") is None or not os.environ.get("DNSMAT_TEST_MPIEXEC"),
                    reason="set DNSMAT_TEST_MPIEXEC=1 with mpiexec on PATH to launch real MPI ranks")
def test_mpiexec(matrix_files):
    pytest.importorskip("mpi4py")
    cmd = ["mpiexec", "-n", "8", sys.executable, "-m", "dnsmat", *matrix_files]
    proc = subprocess.run(cmd, capture_output=True, text=True, timeout=300)

    assert proc.returncode == 0, proc.stderr
    assert proc.stdout == "1 2 3 4\n5 6 7 8\n9 10 11 12\n13 14 15 16\n"

def test_source_that_is_not_utf8(ranks, tmp_path, matrix_files, capsys):
    path = tmp_path / "binary.txt"
    path.write_bytes(b"1 2\n\xff\xfe 4\n")
    argv = [matrix_files[0], str(path)]

    world, codes = ranks(8, lambda comm: main(argv, comm=comm, out=io.StringIO()))

    assert codes == [EXIT_SOURCE_ERROR] * 8
    assert world.total_messages == 0
    err = capsys.readouterr().err
    assert err.count("source error") == 8
    assert "not valid text" in err
