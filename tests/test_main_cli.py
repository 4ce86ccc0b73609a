"""
Tests for the command line surface.
"""

import pytest

import main


@pytest.fixture
def fake_config(monkeypatch, tmp_path):
    cfg = {
        "DEBUG_MODE": False,
        "META_PATH": str(tmp_path / "meta"),
        "SCAN_ROOTS": [],
        "IMAGE_EXTENSIONS": [".jpg"],
        "WORKER_NUM": 4,
        "BATCH_THRESHOLD": 500,
        "TICK_INTERVAL": 1.0,
        "QUEUE_MAXSIZE": 0,
        "DB_POOL_SIZE": 0,
    }
    monkeypatch.setattr("config._config_cache", cfg)
    return cfg


def test_scan_imgs_parses_worker_and_thumb_flags():
    args = main.build_parser().parse_args(["-m", "/tmp/x", "scan-imgs", "/a", "/b", "-w", "8", "-g"])

    assert args.meta_path == "/tmp/x"
    assert args.command == "scan-imgs"
    assert args.roots == ["/a", "/b"]
    assert args.worker_num == 8
    assert args.gen_thumb is True


def test_scan_imgs_wires_worker_num_into_pipeline(monkeypatch, fake_config, tmp_path):
    calls = {}

    def _fake_run_ingest(roots, worker_num=None, gen_thumb=False, config=None):
        calls.update(roots=roots, worker_num=worker_num, gen_thumb=gen_thumb, config=config)
        return {"status": "success"}

    monkeypatch.setattr("core.ingest_core.run_ingest", _fake_run_ingest)

    rc = main.main(["-m", str(tmp_path / "m2"), "scan-imgs", str(tmp_path), "-w", "3"])

    assert rc == 0
    assert calls["roots"] == [str(tmp_path)]
    assert calls["worker_num"] == 3
    assert calls["gen_thumb"] is False
    assert calls["config"]["META_PATH"] == str(tmp_path / "m2")


def test_scan_imgs_falls_back_to_configured_roots(monkeypatch, fake_config, tmp_path):
    fake_config["SCAN_ROOTS"] = [str(tmp_path)]
    seen = []
    monkeypatch.setattr(
        "core.ingest_core.run_ingest",
        lambda roots, **kwargs: seen.append(roots) or {"status": "error"},
    )

    assert main.main(["scan-imgs"]) == 1
    assert seen == [[str(tmp_path)]]


def test_scan_imgs_without_roots_fails(fake_config):
    assert main.main(["scan-imgs"]) == 2


def test_scan_imgs_rejects_zero_workers(fake_config, tmp_path):
    assert main.main(["scan-imgs", str(tmp_path), "-w", "0"]) == 2


def test_list_imgs_prints_records(fake_config, capsys):
    from datetime import datetime

    from core.store_core import ImageStore
    from utils.db import Record

    store = ImageStore.from_config(fake_config)
    store.persist_batch([Record("id-1", datetime(2016, 3, 17, 12, 43, 55), "sig-1")])

    assert main.main(["list-imgs", "--limit", "5"]) == 0

    out = capsys.readouterr().out
    assert "id-1\t2016-03-17 12:43:55\tsig-1" in out
