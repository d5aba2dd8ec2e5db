"""
Block access patterns for exercising a block cache.

Each generator returns `passes` block ids inside the window
[base_block, base_block + blocks). The low blocks are skipped so a
benchmark never touches the superblock / inode area of a formatted disk.
"""
from __future__ import annotations
from typing import Callable, Dict, List, Optional

import numpy as np


LOCAL_SPAN = 10      # blocks revisited by the localized pattern
MIXED_RANDOM_P = 0.1  # chance a mixed access goes to a random block


def random_access(passes: int, blocks: int, base_block: int = 10,
                  rng: Optional[np.random.Generator] = None) -> List[int]:
    """Unrelated blocks drawn uniformly from the window."""
    rng = rng or np.random.default_rng()
    return (rng.integers(0, blocks, size=passes) + base_block).tolist()


def localized_access(passes: int, blocks: int, base_block: int = 10,
                     rng: Optional[np.random.Generator] = None) -> List[int]:
    """A small run of neighbouring blocks, visited over and over."""
    span = min(LOCAL_SPAN, blocks)
    return [i % span + base_block for i in range(passes)]


def mixed_access(passes: int, blocks: int, base_block: int = 10,
                 rng: Optional[np.random.Generator] = None) -> List[int]:
    """Mostly localized, with an occasional random block."""
    rng = rng or np.random.default_rng()
    local = np.arange(passes) % min(LOCAL_SPAN, blocks)
    far = rng.integers(0, blocks, size=passes)
    pick_far = rng.random(passes) < MIXED_RANDOM_P
    return (np.where(pick_far, far, local) + base_block).tolist()


def adversary_access(passes: int, blocks: int, base_block: int = 10,
                     rng: Optional[np.random.Generator] = None) -> List[int]:
    """
    Strides half the window at a time, so consecutive accesses land far apart
    and a block is not revisited for a long stretch. Defeats any cache much
    smaller than the window.
    """
    stride = 1 + blocks // 2
    return [(i * stride) % blocks + base_block for i in range(passes)]


GENERATORS: Dict[str, Callable[..., List[int]]] = {
    "random": random_access,
    "localized": localized_access,
    "mixed": mixed_access,
    "adversary": adversary_access,
}


def generate(pattern: str, passes: int, blocks: int, base_block: int = 10,
             seed: Optional[int] = None) -> List[int]:
    """Returns the block id sequence for a named pattern."""
    if pattern not in GENERATORS:
        raise ValueError(f"Unknown access pattern: {pattern}")
    rng = np.random.default_rng(seed)
    return GENERATORS[pattern](passes, blocks, base_block, rng)


def make_pattern_buffer(block_size: int) -> bytearray:
    """A recognisable block payload: byte i holds i % 128."""
    return bytearray((np.arange(block_size) % 128).astype(np.uint8).tobytes())
