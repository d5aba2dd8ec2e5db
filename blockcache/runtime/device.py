from __future__ import annotations
import os
import time
from pathlib import Path
from typing import Protocol, Set


class DeviceError(IOError):
    """Raised by a block device when a read, write or sync cannot complete."""


class BlockDevice(Protocol):
    """The raw disk a BlockCache sits in front of."""
    block_size: int

    def read_block(self, block_id: int, buffer: bytearray) -> None: ...

    def write_block(self, block_id: int, buffer: bytes | bytearray) -> None: ...

    def sync(self) -> None: ...


class MemoryBlockDevice:
    """
    A RAM-backed disk of `num_blocks` blocks.

    `latency_us` is slept on every read and write to model a slow disk.
    Block ids in `fail_reads` / `fail_writes` raise DeviceError, which
    lets tests inject I/O failures.
    """
    def __init__(self, num_blocks: int, block_size: int = 512, latency_us: float = 0.0):
        if num_blocks <= 0:
            raise ValueError("Device must have at least one block.")
        if block_size <= 0:
            raise ValueError("Block size must be positive.")
        self.num_blocks = num_blocks
        self.block_size = block_size
        self.latency_us = latency_us
        self.blocks = [bytearray(block_size) for _ in range(num_blocks)]

        self.fail_reads: Set[int] = set()
        self.fail_writes: Set[int] = set()

        # I/O counters
        self.reads = 0
        self.writes = 0
        self.syncs = 0

    def _check(self, block_id: int, buffer) -> None:
        if not 0 <= block_id < self.num_blocks:
            raise DeviceError(f"Block {block_id} out of range [0, {self.num_blocks}).")
        if len(buffer) != self.block_size:
            raise ValueError(f"Buffer is {len(buffer)} bytes, device block size is {self.block_size}.")

    def _delay(self):
        if self.latency_us > 0:
            time.sleep(self.latency_us / 1e6)

    def read_block(self, block_id: int, buffer: bytearray) -> None:
        self._check(block_id, buffer)
        if block_id in self.fail_reads:
            raise DeviceError(f"Injected read failure on block {block_id}.")
        self._delay()
        buffer[:] = self.blocks[block_id]
        self.reads += 1

    def write_block(self, block_id: int, buffer: bytes | bytearray) -> None:
        self._check(block_id, buffer)
        if block_id in self.fail_writes:
            raise DeviceError(f"Injected write failure on block {block_id}.")
        self._delay()
        self.blocks[block_id][:] = buffer
        self.writes += 1

    def sync(self) -> None:
        self.syncs += 1

    def io_counters(self) -> dict:
        return {"reads": self.reads, "writes": self.writes, "syncs": self.syncs}


class FileBlockDevice:
    """
    A disk image file. Block i lives at byte offset i * block_size.

    The number of blocks is taken from the file size, so the image must
    already exist (see FileBlockDevice.create).
    """
    def __init__(self, path: str | Path, block_size: int = 512):
        if block_size <= 0:
            raise ValueError("Block size must be positive.")
        self.path = Path(path)
        self.block_size = block_size
        try:
            self._fd = os.open(self.path, os.O_RDWR)
        except OSError as e:
            raise DeviceError(f"Cannot open disk image {self.path}: {e}") from e
        self.num_blocks = os.fstat(self._fd).st_size // block_size

        self.reads = 0
        self.writes = 0
        self.syncs = 0

    @classmethod
    def create(cls, path: str | Path, num_blocks: int, block_size: int = 512) -> FileBlockDevice:
        """Writes a zero-filled image of `num_blocks` blocks and opens it."""
        if num_blocks <= 0:
            raise ValueError("Device must have at least one block.")
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            f.truncate(num_blocks * block_size)
        return cls(path, block_size)

    def _offset(self, block_id: int, buffer) -> int:
        if self._fd is None:
            raise DeviceError(f"Disk image {self.path} is closed.")
        if not 0 <= block_id < self.num_blocks:
            raise DeviceError(f"Block {block_id} out of range [0, {self.num_blocks}).")
        if len(buffer) != self.block_size:
            raise ValueError(f"Buffer is {len(buffer)} bytes, device block size is {self.block_size}.")
        return block_id * self.block_size

    def read_block(self, block_id: int, buffer: bytearray) -> None:
        offset = self._offset(block_id, buffer)
        try:
            data = os.pread(self._fd, self.block_size, offset)
        except OSError as e:
            raise DeviceError(f"Read of block {block_id} failed: {e}") from e
        if len(data) != self.block_size:
            raise DeviceError(f"Short read on block {block_id}: {len(data)} bytes.")
        buffer[:] = data
        self.reads += 1

    def write_block(self, block_id: int, buffer: bytes | bytearray) -> None:
        offset = self._offset(block_id, buffer)
        try:
            written = os.pwrite(self._fd, buffer, offset)
        except OSError as e:
            raise DeviceError(f"Write of block {block_id} failed: {e}") from e
        if written != self.block_size:
            raise DeviceError(f"Short write on block {block_id}: {written} bytes.")
        self.writes += 1

    def sync(self) -> None:
        if self._fd is None:
            raise DeviceError(f"Disk image {self.path} is closed.")
        try:
            os.fsync(self._fd)
        except OSError as e:
            raise DeviceError(f"fsync of {self.path} failed: {e}") from e
        self.syncs += 1

    def io_counters(self) -> dict:
        return {"reads": self.reads, "writes": self.writes, "syncs": self.syncs}

    def close(self) -> None:
        if self._fd is not None:
            os.close(self._fd)
            self._fd = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
