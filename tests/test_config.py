import yaml
import argparse
import pytest
from pathlib import Path
from blockcache.config import CacheConfig, PATTERNS

def test_config_yaml_loading(tmp_path: Path):
    """Tests that config is loaded correctly from a YAML file."""
    yaml_content = {
        'cache_blocks': 32,
        'block_size': 1024,
        'test_type': 'mixed',
        'not_a_field': 1,
    }
    yaml_file = tmp_path / "test.yaml"
    with open(yaml_file, 'w') as f:
        yaml.dump(yaml_content, f)

    # Simulate args parsed from CLI, where only config is provided
    args = argparse.Namespace(config=str(yaml_file), cache_blocks=None, test_type=None)

    config = CacheConfig.from_args(args)

    assert config.cache_blocks == 32
    assert config.block_size == 1024
    assert config.test_type == 'mixed'
    assert config.config_file == str(yaml_file)
    assert not hasattr(config, 'not_a_field')

def test_config_cli_override(tmp_path: Path):
    """Tests that CLI arguments override YAML settings."""
    yaml_content = {
        'cache_blocks': 32,
        'passes': 50,
        'test_type': 'mixed'
    }
    yaml_file = tmp_path / "test.yaml"
    with open(yaml_file, 'w') as f:
        yaml.dump(yaml_content, f)

    # Simulate args parsed from CLI, with values overriding the YAML
    args = argparse.Namespace(
        config=str(yaml_file),
        cache_blocks=8,          # Override
        test_type="random",      # Override
        cache_enabled=None
    )

    config = CacheConfig.from_args(args)

    assert config.cache_blocks == 8        # Overridden value
    assert config.test_type == "random"    # Overridden value
    assert config.passes == 50             # Value from YAML
    assert config.cache_enabled is True    # Default kept

def test_config_missing_yaml(tmp_path: Path, capsys):
    args = argparse.Namespace(config=str(tmp_path / "missing.yaml"))

    config = CacheConfig.from_args(args)

    assert "not found" in capsys.readouterr().out
    assert config.cache_blocks == 10

def test_config_empty_yaml(tmp_path: Path):
    yaml_file = tmp_path / "empty.yaml"
    yaml_file.write_text("")

    config = CacheConfig()
    config.update_from_yaml(str(yaml_file))

    assert config == CacheConfig()

def test_config_patterns():
    """Tests pattern selection from test_type."""
    # given
    config = CacheConfig()

    # when / then
    assert config.patterns() == list(PATTERNS)
    config.test_type = "adversary"
    assert config.patterns() == ["adversary"]

@pytest.mark.parametrize("field, value, message", [
    ("test_type", "sequential", "Unknown test type"),
    ("passes", 0, "passes"),
    ("window_blocks", 0, "Window"),
    ("disk_blocks", -1, "Disk"),
    ("base_block", -5, "Base block"),
    ("window_blocks", 991, "too small"),
])
def test_config_validate_rejects(field, value, message):
    config = CacheConfig()
    setattr(config, field, value)
    with pytest.raises(ValueError, match=message):
        config.validate()

def test_config_validate_skips_window_check_for_disk_image():
    config = CacheConfig(disk_path="disk.img", window_blocks=5000)
    config.validate()
