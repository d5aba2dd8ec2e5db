from __future__ import annotations
import threading
from typing import List

from .device import BlockDevice, DeviceError
from ..utils.logging import get_logger

logger = get_logger("blockcache.cache")

EMPTY_FRAME = -1
DEFAULT_BLOCK_SIZE = 512
DEFAULT_CACHE_BLOCKS = 10


class Slot:
    """A single cache entry holding one device block plus clock metadata."""
    def __init__(self, block_size: int):
        self.frame = EMPTY_FRAME
        self.referenced = False
        self.dirty = False
        self.buffer = bytearray(block_size)

    @property
    def empty(self) -> bool:
        return self.frame == EMPTY_FRAME

    def __repr__(self):
        flags = ("r" if self.referenced else "-") + ("d" if self.dirty else "-")
        return f"[{self.frame} {flags}]"


class BlockCache:
    """
    A fixed-capacity write-back cache in front of a BlockDevice.

    Lookups are a linear scan of the slot table. On a miss, a slot is chosen
    by the second-chance (clock) algorithm, preferring an empty slot; a dirty
    victim is written back to the device before it is reused.

    Every public method runs under a single lock, so the scan-then-allocate
    sequence is atomic with respect to other callers.
    """
    def __init__(self, device: BlockDevice, block_size: int = DEFAULT_BLOCK_SIZE,
                 cache_blocks: int = DEFAULT_CACHE_BLOCKS):
        if block_size < 1:
            logger.debug(f"Block size {block_size} is not positive, using {DEFAULT_BLOCK_SIZE}")
            block_size = DEFAULT_BLOCK_SIZE
        if cache_blocks < 1:
            logger.debug(f"Cache size {cache_blocks} is not positive, using {DEFAULT_CACHE_BLOCKS}")
            cache_blocks = DEFAULT_CACHE_BLOCKS

        self.device = device
        self._block_size = block_size
        self.slots: List[Slot] = [Slot(block_size) for _ in range(cache_blocks)]
        self.clock_hand = 0
        self._lock = threading.Lock()

        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.write_backs = 0
        self.failed_write_backs = 0

    @property
    def capacity(self) -> int:
        return len(self.slots)

    @property
    def block_size(self) -> int:
        return self._block_size

    def _check_request(self, block_id: int, buffer) -> None:
        if block_id < 0:
            raise ValueError(f"Block id {block_id} is negative.")
        if len(buffer) != self._block_size:
            raise ValueError(f"Buffer is {len(buffer)} bytes, cache block size is {self._block_size}.")

    def _find(self, block_id: int) -> Slot | None:
        for slot in self.slots:
            if slot.frame == block_id:
                return slot
        return None

    def read(self, block_id: int, buffer: bytearray) -> bool:
        """
        Reads a block into `buffer`. Returns True if `buffer` now holds the
        block's current data, False if the device failed.
        """
        self._check_request(block_id, buffer)
        with self._lock:
            slot = self._find(block_id)
            if slot is not None:
                slot.referenced = True
                buffer[:] = slot.buffer
                self.hits += 1
                return True

            self.misses += 1
            victim = self._select_victim()
            if victim is None:
                return False

            try:
                self.device.read_block(block_id, buffer)
            except DeviceError as e:
                logger.warning(f"Read of block {block_id} failed: {e}")
                return False

            slot = self.slots[victim]
            self._evict(victim)
            slot.buffer[:] = buffer
            slot.frame = block_id
            slot.referenced = True
            slot.dirty = False
            self.clock_hand = (victim + 1) % self.capacity
            return True

    def write(self, block_id: int, data: bytes | bytearray) -> bool:
        """
        Writes `data` to a block in cache only. The block reaches the device
        on eviction, sync() or flush(). Returns False if a dirty victim could
        not be written back.
        """
        self._check_request(block_id, data)
        with self._lock:
            slot = self._find(block_id)
            if slot is not None:
                slot.referenced = True
                slot.dirty = True
                slot.buffer[:] = data
                self.hits += 1
                return True

            self.misses += 1
            victim = self._select_victim()
            if victim is None:
                return False

            # Whole block is overwritten, so no read before write
            slot = self.slots[victim]
            self._evict(victim)
            slot.buffer[:] = data
            slot.frame = block_id
            slot.referenced = True
            slot.dirty = True
            self.clock_hand = (victim + 1) % self.capacity
            return True

    def _select_victim(self) -> int | None:
        """
        Picks the slot to (re)use and leaves the clock hand on it.
        Returns its index, or None if the victim's write-back failed.
        """
        count = self.capacity

        for step in range(count):
            i = (self.clock_hand + step) % count
            if self.slots[i].empty:
                self.slots[i].referenced = False
                self.clock_hand = i
                return i

        # Second chance: terminates within two passes
        while self.slots[self.clock_hand].referenced:
            self.slots[self.clock_hand].referenced = False
            self.clock_hand = (self.clock_hand + 1) % count

        victim = self.slots[self.clock_hand]
        if victim.dirty and not self._write_back(victim):
            return None

        return self.clock_hand

    def _evict(self, index: int) -> None:
        slot = self.slots[index]
        if not slot.empty:
            self.evictions += 1
            logger.debug(f"Evicting block {slot.frame} from slot {index}")

    def _write_back(self, slot: Slot) -> bool:
        try:
            self.device.write_block(slot.frame, slot.buffer)
        except DeviceError as e:
            self.failed_write_backs += 1
            logger.warning(f"Write-back of block {slot.frame} failed: {e}")
            return False
        slot.dirty = False
        self.write_backs += 1
        logger.debug(f"Wrote back block {slot.frame}")
        return True

    def _drain(self, invalidate: bool) -> int:
        failures = 0
        for slot in self.slots:
            if slot.dirty and not self._write_back(slot):
                failures += 1
                # Keep the data; it has not reached the device
                continue
            if invalidate:
                slot.frame = EMPTY_FRAME
                slot.referenced = False

        if invalidate:
            self.clock_hand = 0

        try:
            self.device.sync()
        except DeviceError as e:
            logger.warning(f"Device sync failed: {e}")
            failures += 1
        return failures

    def sync(self) -> int:
        """
        Writes every dirty block back to the device and issues a device sync.
        Cached data stays valid. Returns the number of failed write-backs.
        """
        with self._lock:
            return self._drain(invalidate=False)

    def flush(self) -> int:
        """
        Like sync(), but also empties every slot and resets the clock hand.
        A slot whose write-back failed keeps its data.
        """
        with self._lock:
            return self._drain(invalidate=True)

    def contains(self, block_id: int) -> bool:
        with self._lock:
            return self._find(block_id) is not None

    def stats(self) -> dict:
        with self._lock:
            total = self.hits + self.misses
            return {
                "hits": self.hits,
                "misses": self.misses,
                "hit_rate": self.hits / total if total else 0.0,
                "evictions": self.evictions,
                "write_backs": self.write_backs,
                "failed_write_backs": self.failed_write_backs,
                "capacity": self.capacity,
                "block_size": self._block_size,
                "resident": sum(1 for s in self.slots if not s.empty),
                "dirty": sum(1 for s in self.slots if s.dirty),
            }

    def get_state_string(self) -> str:
        with self._lock:
            cells = [f"{'>' if i == self.clock_hand else ''}{slot!r}"
                     for i, slot in enumerate(self.slots)]
            return "CACHE: " + " ".join(cells)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.flush()
