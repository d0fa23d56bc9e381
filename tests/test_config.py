"""Tests for configuration validation and rate parsing."""

import pytest

import pacer
from pacer import ConfigurationError, SchedulerConfig, parse_rate


class TestValidation:
    """Invalid configs are rejected at construction."""

    @pytest.mark.parametrize("value", [0, -1, 1.5, True])
    def test_max_concurrent_must_be_positive_int(self, value):
        with pytest.raises(ConfigurationError):
            SchedulerConfig(max_concurrent=value)

    def test_negative_min_time(self):
        with pytest.raises(ConfigurationError):
            SchedulerConfig(min_time=-1)

    def test_negative_max_retries(self):
        with pytest.raises(ConfigurationError):
            SchedulerConfig(max_retries=-1)

    @pytest.mark.parametrize("field", ["max_retries", "reservoir"])
    def test_bool_is_not_a_count(self, field):
        with pytest.raises(ConfigurationError):
            SchedulerConfig(**{field: False})

    def test_negative_retry_delay(self):
        with pytest.raises(ConfigurationError):
            SchedulerConfig(retry_delay=-5)

    def test_negative_reservoir(self):
        with pytest.raises(ConfigurationError):
            SchedulerConfig(reservoir=-1)

    def test_refresh_without_reservoir(self):
        with pytest.raises(ConfigurationError, match="require a reservoir"):
            SchedulerConfig(reservoir_refresh_interval=1000)

    def test_refresh_amount_without_interval(self):
        with pytest.raises(ConfigurationError):
            SchedulerConfig(reservoir=5, reservoir_refresh_amount=1)

    def test_zero_refresh_interval(self):
        with pytest.raises(ConfigurationError):
            SchedulerConfig(reservoir=5, reservoir_refresh_interval=0)

    def test_configuration_error_is_value_error(self):
        """Callers catching ValueError also catch config errors."""
        with pytest.raises(ValueError):
            SchedulerConfig(max_concurrent=0)

    def test_scheduler_rejects_bad_config_eagerly(self):
        with pytest.raises(ConfigurationError):
            pacer.Scheduler(max_concurrent=0)

    def test_scheduler_rejects_config_and_options(self):
        with pytest.raises(ConfigurationError):
            pacer.Scheduler(SchedulerConfig(), max_concurrent=2)

    def test_config_is_immutable(self):
        config = SchedulerConfig()
        with pytest.raises(AttributeError):
            config.max_concurrent = 5


class TestReservoirSettings:
    """Derived reservoir settings."""

    def test_no_reservoir(self):
        config = SchedulerConfig()
        assert not config.has_reservoir
        assert config.refresh_amount is None

    def test_refresh_amount_defaults_to_ceiling(self):
        config = SchedulerConfig(reservoir=10, reservoir_refresh_interval=1000)
        assert config.refresh_amount == 10

    def test_explicit_refresh_amount(self):
        config = SchedulerConfig(reservoir=10, reservoir_refresh_interval=1000, reservoir_refresh_amount=3)
        assert config.refresh_amount == 3

    def test_reservoir_without_refresh(self):
        config = SchedulerConfig(reservoir=10)
        assert config.has_reservoir
        assert config.refresh_amount is None


class TestForSite:
    """SchedulerConfig.for_site derives limits from requests per minute."""

    def test_thirty_per_minute(self):
        config = SchedulerConfig.for_site(30, 1)
        assert config.min_time == 2000
        assert config.max_concurrent == 1
        assert config.reservoir == 30
        assert config.reservoir_refresh_interval == 60_000
        assert config.reservoir_refresh_amount == 30

    def test_min_time_rounds_up(self):
        config = SchedulerConfig.for_site(7)
        assert config.min_time == 8572  # ceil(60000 / 7)

    def test_polite_defaults(self):
        config = SchedulerConfig.for_site(20)
        assert config.max_concurrent == 2
        assert config.max_retries == 3
        assert config.retry_delay == 2000

    def test_rejects_zero_rate(self):
        with pytest.raises(ConfigurationError):
            SchedulerConfig.for_site(0)


class TestParseRate:
    """Rate strings convert to requests per minute."""

    @pytest.mark.parametrize("rate,expected", [
        ("20/min", 20),
        ("15/minute", 15),
        ("2/sec", 120),
        ("1/s", 60),
        ("600/hour", 10),
        ("30/h", 1),
        ("20/MIN", 20),
    ])
    def test_valid_rates(self, rate, expected):
        assert parse_rate(rate) == expected

    @pytest.mark.parametrize("rate", ["20", "20/min/extra", "abc/min", "0/min", "-5/min", "10/day"])
    def test_invalid_rates(self, rate):
        with pytest.raises(ConfigurationError):
            parse_rate(rate)
