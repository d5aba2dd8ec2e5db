import pytest
from blockcache.runtime.device import MemoryBlockDevice
from blockcache.runtime.cache import BlockCache


@pytest.fixture
def ram_disk():
    """A small RAM disk with 4-byte blocks, easy to inspect by hand."""
    return MemoryBlockDevice(num_blocks=64, block_size=4)


@pytest.fixture
def make_cache(ram_disk):
    """Builds a cache of the requested capacity in front of ram_disk."""
    def _make(cache_blocks: int) -> BlockCache:
        return BlockCache(ram_disk, block_size=4, cache_blocks=cache_blocks)
    return _make
