"""Tests for CLI common utilities."""

import argparse

import pytest

from snail_backup.cli.common import (
    add_job_args,
    add_verbosity_args,
    create_global_parser,
    get_log_level,
    load_job_config,
    parse_bool,
    parse_positive_int,
)
from snail_backup.config import ConfigError


class TestCreateGlobalParser:
    """Tests for create_global_parser function."""

    def test_returns_parser(self):
        """Test that it returns an ArgumentParser."""
        parser = create_global_parser()
        assert isinstance(parser, argparse.ArgumentParser)

    def test_parser_has_no_help(self):
        """Test that parser has add_help=False."""
        parser = create_global_parser()
        args = parser.parse_args([])
        assert args is not None

    def test_has_verbosity_args(self):
        """Test that parser has verbosity arguments."""
        parser = create_global_parser()
        args = parser.parse_args(["--verbose"])
        assert args.verbose is True


class TestAddVerbosityArgs:
    """Tests for add_verbosity_args function."""

    @pytest.mark.parametrize(
        "flag,attr",
        [
            ("--verbose", "verbose"),
            ("-v", "verbose"),
            ("--quiet", "quiet"),
            ("-q", "quiet"),
            ("--debug", "debug"),
        ],
    )
    def test_flags(self, flag, attr):
        parser = argparse.ArgumentParser()
        add_verbosity_args(parser)
        args = parser.parse_args([flag])
        assert getattr(args, attr) is True

    def test_defaults_are_false(self):
        """Test that defaults are False."""
        parser = argparse.ArgumentParser()
        add_verbosity_args(parser)
        args = parser.parse_args([])
        assert args.verbose is False
        assert args.quiet is False
        assert args.debug is False


class TestParseBool:
    """Tests for parse_bool function."""

    def test_true(self):
        assert parse_bool("true") is True

    def test_false(self):
        assert parse_bool("false") is False

    @pytest.mark.parametrize("value", ["True", "yes", "1", "", "FALSE"])
    def test_rejects_anything_else(self, value):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_bool(value)


class TestParsePositiveInt:
    """Tests for parse_positive_int function."""

    @pytest.mark.parametrize("value,expected", [("1", 1), ("7", 7), ("30", 30)])
    def test_valid(self, value, expected):
        assert parse_positive_int(value) == expected

    @pytest.mark.parametrize("value", ["0", "-1", "007", "3.5", "abc", ""])
    def test_invalid(self, value):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_positive_int(value)


class TestAddJobArgs:
    """Tests for add_job_args function."""

    @pytest.fixture
    def parser(self):
        parser = argparse.ArgumentParser()
        add_job_args(parser)
        return parser

    def test_config_file_required(self, parser):
        with pytest.raises(SystemExit):
            parser.parse_args([])

    def test_short_options(self, parser):
        args = parser.parse_args(["-c", "job.toml", "-j", "home", "-a", "false", "-r", "4"])
        assert args.config_file == "job.toml"
        assert args.job_identifier == "home"
        assert args.auto_clean is False
        assert args.retain_count == 4

    def test_overrides_default_to_none(self, parser):
        args = parser.parse_args(["--config-file", "job.toml"])
        assert args.job_identifier is None
        assert args.auto_clean is None
        assert args.retain_count is None

    def test_invalid_auto_clean(self, parser):
        with pytest.raises(SystemExit):
            parser.parse_args(["-c", "job.toml", "--auto-clean", "yes"])

    def test_invalid_retain_count(self, parser):
        with pytest.raises(SystemExit):
            parser.parse_args(["-c", "job.toml", "--retain-count", "0"])


class TestGetLogLevel:
    """Tests for get_log_level function."""

    def test_debug_flag(self):
        """Test that debug flag returns DEBUG."""
        args = argparse.Namespace(debug=True, quiet=False, verbose=False)
        assert get_log_level(args) == "DEBUG"

    def test_quiet_flag(self):
        """Test that quiet flag returns WARNING."""
        args = argparse.Namespace(debug=False, quiet=True, verbose=False)
        assert get_log_level(args) == "WARNING"

    def test_verbose_flag(self):
        """Test that verbose flag returns DEBUG."""
        args = argparse.Namespace(debug=False, quiet=False, verbose=True)
        assert get_log_level(args) == "DEBUG"

    def test_no_flags(self):
        """Test that no flags returns INFO."""
        args = argparse.Namespace(debug=False, quiet=False, verbose=False)
        assert get_log_level(args) == "INFO"

    def test_missing_attributes(self):
        """Test handling of missing attributes."""
        assert get_log_level(argparse.Namespace()) == "INFO"


class TestLoadJobConfig:
    """Tests for load_job_config function."""

    def test_overrides_applied(self, config_file):
        args = argparse.Namespace(
            config_file=str(config_file),
            job_identifier="weekly",
            auto_clean=None,
            retain_count=10,
        )
        config = load_job_config(args)
        assert config.identifier == "weekly"
        assert config.retention.retain_count == 10
        assert config.retention.auto_clean is True

    def test_identifier_required(self, minimal_config_file):
        args = argparse.Namespace(
            config_file=str(minimal_config_file),
            job_identifier=None,
            auto_clean=None,
            retain_count=None,
        )
        with pytest.raises(ConfigError, match="identifier"):
            load_job_config(args)
