from __future__ import annotations
import time
from typing import Dict, Any, List, Tuple

from ..config import CacheConfig
from ..bench.workloads import generate, make_pattern_buffer
from .cache import BlockCache
from .device import DeviceError, FileBlockDevice, MemoryBlockDevice
from ..utils.logging import get_logger

logger = get_logger("blockcache.harness")


def build_device(config: CacheConfig):
    """Opens the disk image if one is configured, otherwise a RAM disk."""
    if config.disk_path:
        return FileBlockDevice(config.disk_path, config.block_size)
    return MemoryBlockDevice(config.disk_blocks, config.block_size, config.device_latency_us)


def _timed(op, block_id: int, buffer: bytearray) -> Tuple[bool, float]:
    start = time.perf_counter_ns()
    ok = op(block_id, buffer)
    return ok, (time.perf_counter_ns() - start) / 1000.0


def _raw_ops(device):
    """Wraps the device's raising calls in the cache's boolean contract."""
    def read(block_id, buffer):
        try:
            device.read_block(block_id, buffer)
        except DeviceError as e:
            logger.warning(f"Read of block {block_id} failed: {e}")
            return False
        return True

    def write(block_id, buffer):
        try:
            device.write_block(block_id, buffer)
        except DeviceError as e:
            logger.warning(f"Write of block {block_id} failed: {e}")
            return False
        return True

    return read, write


def run(config: CacheConfig) -> Tuple[List[Dict[str, Any]], Dict[str, Any]]:
    """
    Runs the selected access patterns against the cache (or the bare device
    when the cache is disabled) and times every operation.

    Each pattern gets a write phase followed by a read phase of
    `config.passes` operations. Returns (timeline, stats).
    """
    config.validate()
    device = build_device(config)
    # A disk image's size is only known once it is open
    end = config.base_block + config.window_blocks
    if end > device.num_blocks:
        if isinstance(device, FileBlockDevice):
            device.close()
        raise ValueError(
            f"Disk of {device.num_blocks} blocks is too small for "
            f"window [{config.base_block}, {end})."
        )
    print(f"Running test with cache {'enabled' if config.cache_enabled else 'disabled'}")

    cache = None
    if config.cache_enabled:
        cache = BlockCache(device, config.block_size, config.cache_blocks)
        read_op, write_op = cache.read, cache.write
    else:
        read_op, write_op = _raw_ops(device)

    buffer = make_pattern_buffer(config.block_size)
    timeline: List[Dict[str, Any]] = []
    seq = 0

    try:
        for pattern in config.patterns():
            # Reads draw a fresh sequence, as the write phase did
            read_seed = None if config.seed is None else config.seed + 1
            phases = (
                ("write", write_op, generate(pattern, config.passes, config.window_blocks,
                                             config.base_block, config.seed)),
                ("read", read_op, generate(pattern, config.passes, config.window_blocks,
                                           config.base_block, read_seed)),
            )
            for phase, op, blocks in phases:
                for block_id in blocks:
                    ok, latency_us = _timed(op, block_id, buffer)
                    if not ok:
                        logger.warning(f"{pattern} {phase} of block {block_id} failed")
                    timeline.append({
                        'pattern': pattern,
                        'phase': phase,
                        'seq': seq,
                        'block': block_id,
                        'latency_us': latency_us,
                        'ok': ok,
                    })
                    seq += 1

        stats: Dict[str, Any] = {}
        if cache is not None:
            stats["sync_failures"] = cache.sync()
            stats["cache_stats"] = cache.stats()
        else:
            device.sync()
            stats["sync_failures"] = 0
        stats["device_io"] = device.io_counters()
    finally:
        if isinstance(device, FileBlockDevice):
            device.close()

    return timeline, stats
