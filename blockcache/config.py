from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional
import yaml
from pathlib import Path

PATTERNS = ("random", "localized", "mixed", "adversary")


@dataclass
class CacheConfig:
    """Block cache and benchmark harness configuration."""
    # Cache geometry
    block_size: int = 512
    cache_blocks: int = 10

    # Backing device
    disk_blocks: int = 1000
    disk_path: str = ""  # empty -> RAM-backed device
    device_latency_us: float = 0.0

    # Config file
    config_file: str = ""

    # Reporting
    report_dir: str = "out/default_run"

    # Harness parameters
    cache_enabled: bool = True
    test_type: str = "all"  # random, localized, mixed, adversary, all
    passes: int = 200
    window_blocks: int = 990  # blocks touched by random/adversary patterns
    base_block: int = 10      # first block the patterns may touch
    seed: Optional[int] = None

    def patterns(self) -> List[str]:
        """Returns the access patterns selected by test_type."""
        if self.test_type == "all":
            return list(PATTERNS)
        return [self.test_type]

    def validate(self):
        """Rejects harness settings that cannot run."""
        if self.test_type != "all" and self.test_type not in PATTERNS:
            raise ValueError(f"Unknown test type: {self.test_type}")
        if self.passes <= 0:
            raise ValueError("Number of passes must be positive.")
        if self.window_blocks <= 0:
            raise ValueError("Window must cover at least one block.")
        if self.disk_blocks <= 0:
            raise ValueError("Disk must have at least one block.")
        if self.base_block < 0:
            raise ValueError("Base block must not be negative.")
        if not self.disk_path and self.base_block + self.window_blocks > self.disk_blocks:
            raise ValueError(
                f"Disk of {self.disk_blocks} blocks is too small for "
                f"window [{self.base_block}, {self.base_block + self.window_blocks})."
            )

    def update_from_yaml(self, yaml_path: str):
        """Updates config fields from a YAML file."""
        with open(yaml_path, 'r') as f:
            yaml_config = yaml.safe_load(f) or {}
        for key, value in yaml_config.items():
            if hasattr(self, key):
                setattr(self, key, value)

    @classmethod
    def from_args(cls, args) -> CacheConfig:
        """Factory method to create a CacheConfig from parsed argparse arguments."""
        config = cls()

        # 1. Load from YAML config file if provided
        if hasattr(args, 'config') and args.config:
            config.config_file = args.config
            if Path(config.config_file).exists():
                config.update_from_yaml(config.config_file)
            else:
                print(f"Warning: Config file {config.config_file} not found.")

        # 2. Override with command-line arguments
        arg_dict = vars(args)
        for key, value in arg_dict.items():
            if value is not None and hasattr(config, key):
                setattr(config, key, value)

        return config
