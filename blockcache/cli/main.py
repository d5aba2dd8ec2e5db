from __future__ import annotations
import argparse
from ..config import CacheConfig, PATTERNS
from ..runtime.device import FileBlockDevice
from ..runtime.harness import run as run_bench
from ..utils.reporting import generate_report


def cmd_mkdisk(args):
    """Handles the 'mkdisk' command."""
    device = FileBlockDevice.create(args.path, args.blocks, args.block_size)
    device.close()
    print(f"[OK] Created {args.path}: {args.blocks} blocks of {args.block_size} bytes")


def cmd_run(args):
    """Handles the 'run' command."""
    # Create harness config from args
    config = CacheConfig.from_args(args)

    print("--- Block Cache Configuration ---")
    print(config)
    print("---------------------------------")

    timeline, stats = run_bench(config)

    generate_report(timeline, config, stats)

    print(f"[OK] Benchmark finished. Reports are in {config.report_dir}")


def build_parser():
    p = argparse.ArgumentParser(
        prog="blockcache",
        description="Write-back block cache with second-chance replacement",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    # --- mkdisk Command ---
    pm = sub.add_parser("mkdisk", help="Create a zero-filled disk image",
                        formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    pm.add_argument("path", help="Path of the disk image to create")
    pm.add_argument("--blocks", type=int, default=1000,
                    help="Number of blocks on the disk")
    pm.add_argument("--block-size", type=int, default=512, dest="block_size",
                    help="Bytes per block")
    pm.set_defaults(func=cmd_mkdisk)

    # --- Run Command ---
    pr = sub.add_parser("run", help="Run the access-pattern benchmark",
                        formatter_class=argparse.ArgumentDefaultsHelpFormatter)

    # Config file
    pr.add_argument("-c", "--config", type=str, default=None,
                    help="Path to YAML config file to override defaults")

    # Core args (set default=None to allow override from YAML)
    pr.add_argument("--test", type=str, default=None, dest="test_type",
                    choices=[*PATTERNS, "all"], help="Access pattern to run")
    pr.add_argument("--disabled", action="store_false", default=None, dest="cache_enabled",
                    help="Bypass the cache and hit the device directly")
    pr.add_argument("--passes", type=int, default=None,
                    help="Operations per phase (write, then read)")
    pr.add_argument("--seed", type=int, default=None,
                    help="Seed for the random access patterns")
    pr.add_argument("--report", type=str, default=None, dest="report_dir",
                    help="Directory to save benchmark reports")

    # Cache args
    cache_group = pr.add_argument_group('Cache Arguments')
    cache_group.add_argument("--cache-blocks", type=int, default=None, dest="cache_blocks",
                             help="Number of slots in the cache")
    cache_group.add_argument("--block-size", type=int, default=None, dest="block_size",
                             help="Bytes per block")

    # Device args
    device_group = pr.add_argument_group('Device Arguments')
    device_group.add_argument("--disk", type=str, default=None, dest="disk_path",
                              help="Disk image to use instead of a RAM disk")
    device_group.add_argument("--disk-blocks", type=int, default=None, dest="disk_blocks",
                              help="Size of the RAM disk in blocks")
    device_group.add_argument("--latency-us", type=float, default=None, dest="device_latency_us",
                              help="Simulated RAM disk latency per block I/O")

    pr.set_defaults(func=cmd_run)

    return p


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    main()
