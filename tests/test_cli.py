import json
from pathlib import Path
from blockcache.cli.main import build_parser, main


def test_mkdisk(tmp_path: Path, capsys):
    path = tmp_path / "disks" / "disk.img"

    main(["mkdisk", str(path), "--blocks", "50", "--block-size", "64"])

    assert path.stat().st_size == 50 * 64
    assert "[OK] Created" in capsys.readouterr().out


def test_run_flags_default_to_none():
    """Unset run flags stay None so YAML values are not clobbered."""
    args = build_parser().parse_args(["run"])

    assert args.cache_enabled is None
    assert args.test_type is None
    assert args.cache_blocks is None


def test_run_disabled_flag():
    args = build_parser().parse_args(["run", "--disabled", "--test", "mixed"])

    assert args.cache_enabled is False
    assert args.test_type == "mixed"


def test_run_writes_reports(tmp_path: Path, capsys):
    report_dir = tmp_path / "report"

    main(["run", "--test", "localized", "--passes", "20", "--seed", "3",
          "--report", str(report_dir)])

    report = json.loads((report_dir / "report.json").read_text())
    assert report["total_ops"] == 40
    assert report["cache_stats"]["hits"] == 30
    assert (report_dir / "report.html").exists()
    out = capsys.readouterr().out
    assert "Running test with cache enabled" in out
    assert "[OK] Benchmark finished" in out


def test_run_with_yaml_and_disk(tmp_path: Path):
    disk = tmp_path / "disk.img"
    main(["mkdisk", str(disk), "--blocks", "100", "--block-size", "128"])
    cfg = tmp_path / "bench.yaml"
    cfg.write_text(f"block_size: 128\ncache_blocks: 4\npasses: 10\nwindow_blocks: 50\n"
                   f"disk_path: {disk}\nreport_dir: {tmp_path / 'out'}\n")

    main(["run", "-c", str(cfg), "--test", "adversary", "--seed", "1"])

    report = json.loads((tmp_path / "out" / "report.json").read_text())
    assert report["config"]["cache_blocks"] == 4
    assert report["failed_ops"] == 0
    assert report["device_io"]["syncs"] == 1
