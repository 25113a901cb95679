import os

from tinylsm.record import Record
from tinylsm.wal import WAL

LONG = 3600


def make_wal(path, buffer_size=100, max_finished=0, limit=1 << 20):
    return WAL(str(path), buffer_size, max_finished, LONG, limit)


def test_log_and_recover(tmp_path):
    records = [
        Record.create(1),
        Record.put(1, "k", "v"),
        Record.commit(1),
        Record.put(2, "x", "y"),
    ]
    with make_wal(tmp_path) as wal:
        wal.log(records, True)
    recovered = WAL.recover(tmp_path, 0)
    assert list(recovered) == [1, 2]
    assert recovered[1] == records[:3]
    assert recovered[2] == [records[3]]


def test_recover_filters_flushed(tmp_path):
    with make_wal(tmp_path) as wal:
        wal.log([Record.put(1, "a", "1"), Record.put(3, "b", "2")], True)
    recovered = WAL.recover(tmp_path, 2)
    assert list(recovered) == [3]


def test_recover_missing_dir(tmp_path):
    assert WAL.recover(tmp_path / "nothing", 0) == {}


def test_buffer_holds_until_full(tmp_path):
    wal = make_wal(tmp_path, buffer_size=3)
    try:
        wal.log([Record.put(1, "a", "1")])
        assert os.path.getsize(wal.active_path) == 0
        wal.log([Record.put(1, "b", "2"), Record.put(1, "c", "3")])
        assert WAL.recover(tmp_path, 0)[1] == [
            Record.put(1, "a", "1"),
            Record.put(1, "b", "2"),
            Record.put(1, "c", "3"),
        ]
    finally:
        wal.close()


def test_flush_writes_buffer(tmp_path):
    wal = make_wal(tmp_path, buffer_size=10)
    try:
        wal.log([Record.delete(4, "gone")])
        wal.flush()
        assert WAL.recover(tmp_path, 0) == {4: [Record.delete(4, "gone")]}
    finally:
        wal.close()


def test_rotation(tmp_path):
    wal = make_wal(tmp_path, limit=1)
    try:
        wal.log([Record.put(1, "k", "v")], True)
        assert wal.active_path.endswith("wal.1")
        assert os.path.exists(tmp_path / "wal.0")
        assert os.path.getsize(tmp_path / "wal.1") == 0
    finally:
        wal.close()


def test_recover_orders_files_numerically(tmp_path):
    (tmp_path / "wal.10").write_bytes(Record.put(5, "a", "later").encode())
    (tmp_path / "wal.2").write_bytes(Record.put(5, "a", "earlier").encode())
    (tmp_path / "other").write_bytes(b"ignored")
    recovered = WAL.recover(tmp_path, 0)
    assert [r.value for r in recovered[5]] == ["earlier", "later"]


def test_clean_keeps_unfinished(tmp_path):
    wal = make_wal(tmp_path, limit=1)
    try:
        wal.log([Record.put(1, "k", "v"), Record.commit(1)], True)
        wal.clean_wal_files()
        assert os.path.exists(tmp_path / "wal.0")
        assert WAL.recover(tmp_path, 0) == {
            1: [Record.put(1, "k", "v"), Record.commit(1)]
        }
    finally:
        wal.close()


def test_clean_removes_finished(tmp_path):
    wal = make_wal(tmp_path, limit=1)
    try:
        wal.log([Record.put(1, "k", "v"), Record.commit(1)], True)
        wal.set_max_finished_tranc_id(1)
        wal.clean_wal_files()
        assert not os.path.exists(tmp_path / "wal.0")
        assert os.path.exists(wal.active_path)
        assert WAL.recover(tmp_path, 0) == {}
    finally:
        wal.close()


def test_close_is_idempotent(tmp_path):
    wal = make_wal(tmp_path)
    wal.log([Record.create(7)])
    wal.close()
    wal.close()
    assert WAL.recover(tmp_path, 0) == {7: [Record.create(7)]}