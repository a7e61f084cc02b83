"""Tests for CLI configuration module."""

import json

from cli.config import Config


def test_config_creates_default_file(tmp_path):
    """Test that config file is created with defaults if missing."""
    config_path = tmp_path / '.telestore' / 'config.json'
    config = Config(config_path)

    assert config_path.exists()

    assert config.data['service_host'] == Config.DEFAULT_CONFIG['service_host']
    assert config.data['service_port'] == Config.DEFAULT_CONFIG['service_port']
    assert config.data['timeout'] == 30
    assert config.data['transfer_timeout'] == 3600
    assert config.data['max_retries'] == 3
    assert config.data['retry_backoff_multiplier'] == 2


def test_config_loads_existing_file(tmp_path):
    """Test loading existing config file."""
    config_path = tmp_path / '.telestore' / 'config.json'
    config_path.parent.mkdir(parents=True)

    with open(config_path, 'w') as f:
        json.dump({'service_host': 'example.com', 'service_port': 9000}, f)

    config = Config(config_path)

    assert config.get_base_url() == 'http://example.com:9000'
    assert config.get_timeout() == 30
    assert config.get_retry_config() == {'max_retries': 3, 'retry_backoff_multiplier': 2}


def test_config_corrupted_file_uses_defaults(tmp_path):
    """Test that an unreadable config falls back to defaults and keeps a backup."""
    config_path = tmp_path / 'config.json'
    config_path.write_text('{not json')

    config = Config(config_path)

    assert config.data == Config.DEFAULT_CONFIG
    assert (tmp_path / 'config.json.bak').exists()


def test_config_save_persists_changes(temp_config):
    temp_config.data['transfer_timeout'] = 7200
    temp_config.save()

    with open(temp_config.config_path, 'r') as f:
        data = json.load(f)
    assert data['transfer_timeout'] == 7200
    assert Config(temp_config.config_path).get_transfer_timeout() == 7200
