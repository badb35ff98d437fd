"""Tests for RunConfig."""

import math
from datetime import timedelta

import pytest

from offload.contracts import DEFAULT_RETRIES, DEFAULT_RETRY_DELAY, RunConfig, to_seconds
from offload.core.config import LoggingSettings, OffloadSettings


class TestRunConfigDefaults:
    def test_defaults_match_documented_values(self) -> None:
        config = RunConfig()

        assert config.timeout is None
        assert config.retries == DEFAULT_RETRIES == 3
        assert config.retry_delay == DEFAULT_RETRY_DELAY == 2.0
        assert config.enable_profiling is False
        assert config.start_method == "spawn"

    def test_default_factory(self) -> None:
        assert RunConfig.default() == RunConfig()

    def test_single_shot_factory(self) -> None:
        config = RunConfig.single_shot(timeout=3)

        assert config.retries == 1
        assert config.timeout == 3.0

    def test_is_frozen(self) -> None:
        config = RunConfig()

        with pytest.raises(AttributeError):
            config.retries = 5  # type: ignore[misc]

    def test_instances_do_not_share_state(self) -> None:
        """Changing one call's config never affects another call's defaults."""
        custom = RunConfig(retries=7, retry_delay=0.1)

        assert RunConfig().retries == 3
        assert custom.retries == 7


class TestRunConfigValidation:
    @pytest.mark.parametrize("retries", [0, -1])
    def test_rejects_retries_below_one(self, retries: int) -> None:
        with pytest.raises(ValueError, match="retries must be >= 1"):
            RunConfig(retries=retries)

    def test_rejects_bool_retries(self) -> None:
        with pytest.raises(ValueError, match="retries must be an integer"):
            RunConfig(retries=True)

    @pytest.mark.parametrize("timeout", [0, -1.0])
    def test_rejects_non_positive_timeout(self, timeout: float) -> None:
        with pytest.raises(ValueError, match="timeout must be > 0"):
            RunConfig(timeout=timeout)

    def test_rejects_negative_retry_delay(self) -> None:
        with pytest.raises(ValueError, match="retry_delay must be >= 0"):
            RunConfig(retry_delay=-0.1)

    @pytest.mark.parametrize("timeout", [math.nan, math.inf])
    def test_rejects_non_finite_timeout(self, timeout: float) -> None:
        with pytest.raises(ValueError, match="timeout must be > 0 and finite"):
            RunConfig(timeout=timeout)

    @pytest.mark.parametrize("retry_delay", [math.nan, math.inf])
    def test_rejects_non_finite_retry_delay(self, retry_delay: float) -> None:
        with pytest.raises(ValueError, match="retry_delay must be >= 0 and finite"):
            RunConfig(retry_delay=retry_delay)

    def test_zero_retry_delay_allowed(self) -> None:
        assert RunConfig(retry_delay=0).retry_delay == 0.0

    def test_rejects_unknown_start_method(self) -> None:
        with pytest.raises(ValueError, match="Unknown start_method"):
            RunConfig(start_method="thread")  # type: ignore[arg-type]


class TestDurations:
    def test_timedelta_normalised_to_seconds(self) -> None:
        config = RunConfig(
            timeout=timedelta(seconds=3),  # type: ignore[arg-type]
            retry_delay=timedelta(milliseconds=100),  # type: ignore[arg-type]
        )

        assert config.timeout == 3.0
        assert config.retry_delay == pytest.approx(0.1)

    def test_to_seconds_rejects_strings(self) -> None:
        with pytest.raises(ValueError, match="Duration must be seconds or a timedelta"):
            to_seconds("3s")  # type: ignore[arg-type]

    def test_to_seconds_accepts_int(self) -> None:
        assert to_seconds(2) == 2.0


class TestFromSettings:
    def test_maps_renamed_fields(self) -> None:
        settings = OffloadSettings(
            timeout_seconds=30,
            retries=5,
            retry_delay_seconds=0.5,
            enable_profiling=True,
            start_method="forkserver",
            logging=LoggingSettings(level="DEBUG"),
        )

        config = RunConfig.from_settings(settings)

        assert config == RunConfig(
            timeout=30.0,
            retries=5,
            retry_delay=0.5,
            enable_profiling=True,
            start_method="forkserver",
        )

    def test_unset_retries_uses_default(self) -> None:
        config = RunConfig.from_settings(OffloadSettings())

        assert config.retries == DEFAULT_RETRIES
