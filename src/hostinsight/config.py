"""Runtime configuration for hostinsight."""

import logging
import os
from dataclasses import dataclass, field, replace

logger = logging.getLogger(__name__)

ENV_PREFIX = "HOSTINSIGHT_"

DEFAULT_CPU_FREQUENCY_PATH = "/sys/devices/system/cpu/cpu0/cpufreq/cpuinfo_max_freq"


@dataclass(slots=True, frozen=True)
class InsightConfig:
    """Settings shared by the host sources, the aggregator and the CLI."""

    probe_timeout: float = 5.0  # Seconds, shared deadline for one collect()
    wireless_interface: str = "wlan0"
    cpu_frequency_path: str = DEFAULT_CPU_FREQUENCY_PATH
    external_mount_prefixes: tuple[str, ...] = field(
        default=("/media/", "/run/media/", "/mnt/")
    )
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "InsightConfig":
        """
        Build a config from HOSTINSIGHT_* environment variables.

        Unset variables keep their defaults. An unparsable timeout is logged
        and ignored.

        Args:
            environ: Mapping to read from. Defaults to os.environ.
        """
        env = os.environ if environ is None else environ
        config = cls()

        timeout = env.get(f"{ENV_PREFIX}PROBE_TIMEOUT")
        if timeout:
            try:
                config = config.with_timeout(float(timeout))
            except ValueError:
                logger.warning("Ignoring invalid %sPROBE_TIMEOUT=%r", ENV_PREFIX, timeout)

        interface = env.get(f"{ENV_PREFIX}WIRELESS_INTERFACE")
        if interface:
            config = replace(config, wireless_interface=interface)

        freq_path = env.get(f"{ENV_PREFIX}CPU_FREQUENCY_PATH")
        if freq_path:
            config = replace(config, cpu_frequency_path=freq_path)

        level = env.get(f"{ENV_PREFIX}LOG_LEVEL")
        if level:
            config = replace(config, log_level=level.upper())

        return config

    def with_timeout(self, seconds: float) -> "InsightConfig":
        """Return a copy with the probe timeout set (minimum 0.1 seconds)."""
        return replace(self, probe_timeout=max(0.1, seconds))
