"""
Tests for ScanConfig parsing.
"""

from backend.mcps.codescan.config import (
    DEFAULT_GITLAB_URL,
    DEFAULT_MAX_FILE_BYTES,
    DEFAULT_MAX_WORKERS,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_RULE_TIMEOUT_SECONDS,
    ScanConfig,
)


def test_defaults():
    config = ScanConfig()
    assert config.gitlab_url == DEFAULT_GITLAB_URL
    assert config.max_workers == DEFAULT_MAX_WORKERS
    assert config.request_timeout == DEFAULT_REQUEST_TIMEOUT_SECONDS
    assert config.max_file_bytes == DEFAULT_MAX_FILE_BYTES
    assert config.rule_timeout == DEFAULT_RULE_TIMEOUT_SECONDS
    assert config.report_all_matches is False
    assert config.redact_matches is True


def test_from_dict_none_gives_defaults():
    assert ScanConfig.from_dict(None) == ScanConfig()


def test_from_env_reads_variables():
    config = ScanConfig.from_env(
        {
            "GITLAB_URL": "https://gitlab.example.com/api/v4/",
            "LEAKSCAN_MAX_WORKERS": "4",
            "LEAKSCAN_REQUEST_TIMEOUT": "5.5",
            "LEAKSCAN_MAX_FILE_BYTES": "1024",
            "LEAKSCAN_RULE_TIMEOUT": "0.5",
            "LEAKSCAN_REPORT_ALL_MATCHES": "yes",
            "LEAKSCAN_REDACT_MATCHES": "off",
        }
    )
    assert config.gitlab_url == "https://gitlab.example.com/api/v4"
    assert config.max_workers == 4
    assert config.request_timeout == 5.5
    assert config.max_file_bytes == 1024
    assert config.rule_timeout == 0.5
    assert config.report_all_matches is True
    assert config.redact_matches is False


def test_invalid_values_fall_back_to_defaults():
    config = ScanConfig.from_env(
        {
            "LEAKSCAN_MAX_WORKERS": "many",
            "LEAKSCAN_REQUEST_TIMEOUT": "-1",
            "LEAKSCAN_MAX_FILE_BYTES": "0",
            "LEAKSCAN_RULE_TIMEOUT": "soon",
            "LEAKSCAN_REPORT_ALL_MATCHES": "maybe",
        }
    )
    assert config.max_workers == DEFAULT_MAX_WORKERS
    assert config.request_timeout == DEFAULT_REQUEST_TIMEOUT_SECONDS
    assert config.max_file_bytes == DEFAULT_MAX_FILE_BYTES
    assert config.report_all_matches is False
    assert config.rule_timeout == DEFAULT_RULE_TIMEOUT_SECONDS


def test_worker_count_is_clamped():
    assert ScanConfig(max_workers=0).max_workers == 1
    assert ScanConfig(max_workers=100).max_workers == 16


def test_non_positive_rule_timeout_uses_default():
    assert ScanConfig(rule_timeout=0).rule_timeout == DEFAULT_RULE_TIMEOUT_SECONDS
    assert ScanConfig(rule_timeout=-3).rule_timeout == DEFAULT_RULE_TIMEOUT_SECONDS
