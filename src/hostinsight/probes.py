"""
Probes for hostinsight.

A probe reads one facet of host state through its injected source and returns
a facet record. run() never raises: each field is read on its own, and a field
whose source fails degrades to that field's sentinel while the rest of the
facet is kept.
"""

import logging
import re
from collections.abc import Callable
from datetime import datetime
from typing import ClassVar, TypeVar

from hostinsight import sources
from hostinsight.config import InsightConfig
from hostinsight.models import (
    UNKNOWN,
    CameraData,
    CameraInfo,
    DisplayInfo,
    Facet,
    HardwareInfo,
    MemoryInfo,
    NetworkInfo,
    OSInfo,
    Overview,
    PowerInfo,
    SensorData,
    SensorInfo,
    SystemInfo,
)
from hostinsight.normalize import (
    battery_percent,
    decode,
    density_bucket,
    format_frequency,
    format_hardware_address,
    format_megapixels,
    format_uptime,
    screen_size,
    unpack_ipv4,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

TIMESTAMP_FORMAT = "%b %d %Y %H:%M:%S"

BATTERY_STATUS = {
    "Charging": "Charging",
    "Discharging": "Discharging",
    "Full": "Full",
    "Not charging": "Not Charging",
    "Unknown": UNKNOWN,
}

BATTERY_HEALTH = {
    "Good": "Good",
    "Overheat": "Overheat",
    "Dead": "Dead",
    "Over voltage": "Over Voltage",
    "Unspecified failure": "Unspecified Failure",
    "Cold": "Cold",
}

PLUG_SOURCE = {
    "Mains": "AC",
    "USB": "USB",
    "USB_C": "USB",
    "USB_PD": "USB",
    "Wireless": "Wireless",
}
NOT_CHARGING = "Not Charging"

# Transport code -> label, highest priority first
TRANSPORT_PRIORITY = [
    ("wifi", "WiFi"),
    ("cellular", "Mobile Data"),
    ("ethernet", "Ethernet"),
]

SENSOR_TYPES = {
    "accel": "Accelerometer",
    "anglvel": "Gyroscope",
    "magn": "Magnetometer",
    "proximity": "Proximity",
    "illuminance": "Light",
    "intensity": "Light",
    "pressure": "Pressure",
    "temperature": "Temperature",
    "temp": "Temperature",
    "humidityrelative": "Humidity",
    "rot": "Rotation Vector",
    "gravity": "Gravity",
    "fan": "Fan",
}

CAMERA_FACING = {
    "front": "Front",
    "back": "Back",
    "external": "External",
}

# SIMD / crypto extensions worth listing out of the full CPU flag set
INSTRUCTION_SETS = {
    "sse", "sse2", "sse3", "ssse3", "sse4_1", "sse4_2", "avx", "avx2",
    "avx512f", "fma", "aes", "sha_ni", "neon", "asimd", "sve", "sve2",
}


class Probe:
    """Base class: one probe per facet, named after its Snapshot attribute."""

    facet_name: ClassVar[str]
    facet: ClassVar[type]

    def run(self) -> Facet:
        raise NotImplementedError

    def _field(self, label: str, read: Callable[[], T], default: T) -> T:
        """
        Read one field, returning `default` if the source fails.

        Any exception counts as a failure: sources wrap platform APIs whose
        error types are not all known, and run() must never raise.
        """
        try:
            return read()
        except Exception as exc:
            logger.debug("%s probe: %s unavailable (%s)", self.facet_name, label, exc)
            return default

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class IdentityProbe(Probe):
    facet_name = "overview"
    facet = Overview

    def __init__(self, source: sources.IdentitySource) -> None:
        self._source = source

    def run(self) -> Overview:
        dmi = self._source.dmi
        return Overview(
            manufacturer=self._field("manufacturer", lambda: dmi("sys_vendor"), UNKNOWN),
            model=self._field("model", lambda: dmi("product_name"), UNKNOWN),
            brand=self._field("brand", lambda: dmi("chassis_vendor"), UNKNOWN),
            board=self._field("board", lambda: dmi("board_name"), UNKNOWN),
            bootloader=self._field("bootloader", lambda: dmi("bios_version"), UNKNOWN),
            device=self._field("device", self._source.hostname, UNKNOWN),
            product=self._field("product", lambda: dmi("product_version"), UNKNOWN),
            hardware=self._field("hardware", self._source.machine, UNKNOWN),
        )


class OSProbe(Probe):
    facet_name = "os"
    facet = OSInfo

    # Trailing date of a kernel build string, e.g. '... Thu Oct  5 21:02:42 UTC 2023'
    BUILD_DATE = re.compile(r"([A-Z][a-z]{2}) +(\d{1,2}) (\d{2}:\d{2}:\d{2})(?: [A-Z]+)? (\d{4})")

    def __init__(self, source: sources.OSSource) -> None:
        self._source = source

    def run(self) -> OSInfo:
        release = self._field("os-release", self._source.os_release, {})
        kernel_build = self._field("kernel build", self._source.kernel_build, UNKNOWN)
        return OSInfo(
            name=release.get("NAME", UNKNOWN),
            version=release.get("VERSION", UNKNOWN),
            version_id=release.get("VERSION_ID", UNKNOWN),
            codename=release.get("VERSION_CODENAME", UNKNOWN),
            build_id=release.get("BUILD_ID", UNKNOWN),
            kernel_release=self._field("kernel release", self._source.kernel_release, UNKNOWN),
            kernel_build=kernel_build,
            build_date=self.parse_build_date(kernel_build),
            python_build=self._field("python build", self._source.python_build, UNKNOWN),
        )

    @classmethod
    def parse_build_date(cls, kernel_build: str) -> str:
        """Extract the build timestamp from a kernel version string."""
        match = cls.BUILD_DATE.search(kernel_build)
        if not match:
            return UNKNOWN
        month, day, clock, year = match.groups()
        return f"{month} {int(day):02d} {year} {clock}"


class HardwareProbe(Probe):
    facet_name = "hardware"
    facet = HardwareInfo

    def __init__(self, source: sources.CpuSource) -> None:
        self._source = source

    def run(self) -> HardwareInfo:
        flags = self._field("flags", self._source.flags, [])
        return HardwareInfo(
            architecture=self._field("architecture", self._source.architecture, UNKNOWN) or UNKNOWN,
            cpu_model=self._field("model", self._source.model_name, UNKNOWN),
            cores=self._field("cores", self._source.logical_cores, None) or -1,
            physical_cores=self._field("physical cores", self._source.physical_cores, None) or -1,
            cpu_frequency=self._cpu_frequency(),
            instruction_sets=[flag for flag in flags if flag in INSTRUCTION_SETS],
        )

    def _cpu_frequency(self) -> str:
        raw = self._field("frequency", self._source.max_frequency_raw, None)
        if raw is None:
            return UNKNOWN
        try:
            return format_frequency(int(raw))
        except ValueError:
            logger.debug("hardware probe: non-numeric frequency %r", raw)
            return UNKNOWN


class MemoryProbe(Probe):
    facet_name = "memory"
    facet = MemoryInfo

    def __init__(self, source: sources.StorageSource) -> None:
        self._source = source

    def run(self) -> MemoryInfo:
        total_ram, available_ram, used_ram = self._usage("ram", self._source.ram)
        total_int, available_int, used_int = self._usage("internal storage", self._source.internal)

        has_external = self._field("external mounted", self._source.external_mounted, False)
        external_total = external_available = None
        if has_external:
            external = self._field("external storage", self._source.external, None)
            # Both totals or neither
            if external is not None and None not in external:
                external_total, external_available = external

        return MemoryInfo(
            total_ram=total_ram,
            available_ram=available_ram,
            used_ram=used_ram,
            total_internal_storage=total_int,
            available_internal_storage=available_int,
            used_internal_storage=used_int,
            has_external_storage=has_external,
            total_external_storage=external_total,
            available_external_storage=external_available,
        )

    def _usage(self, label: str, read: Callable[[], tuple[int, int]]) -> tuple[int, int, int]:
        """Return (total, available, used), or all -1 when unreadable."""
        totals = self._field(label, read, None)
        if totals is None:
            return -1, -1, -1
        total, available = totals
        return total, available, total - available


class PowerProbe(Probe):
    facet_name = "power"
    facet = PowerInfo

    def __init__(self, source: sources.PowerSource) -> None:
        self._source = source

    def run(self) -> PowerInfo:
        reading = self._field("battery", self._source.battery, None)
        if reading is None:
            return PowerInfo.unknown()

        status = decode(BATTERY_STATUS, reading.status)
        if reading.plugged is None:
            charging_source = NOT_CHARGING
        else:
            charging_source = decode(PLUG_SOURCE, reading.plugged)

        return PowerInfo(
            level=battery_percent(reading.level, reading.scale),
            status=status,
            health=decode(BATTERY_HEALTH, reading.health),
            temperature=(
                reading.temperature_tenths / 10.0
                if reading.temperature_tenths is not None
                else -1.0
            ),
            voltage=reading.voltage_mv if reading.voltage_mv is not None else -1,
            technology=reading.technology or UNKNOWN,
            is_charging=status == "Charging",
            charging_source=charging_source,
        )


class DisplayProbe(Probe):
    facet_name = "display"
    facet = DisplayInfo

    def __init__(self, source: sources.DisplaySource) -> None:
        self._source = source

    def run(self) -> DisplayInfo:
        metrics = self._field("metrics", self._source.metrics, None)
        if metrics is None:
            return DisplayInfo.unknown()

        width, height = metrics.width_px, metrics.height_px
        dpi = metrics.dpi
        if dpi is not None and dpi > 0:
            density, bucket, size = dpi, density_bucket(dpi), screen_size(width, height, dpi)
        else:
            density, bucket, size = -1, UNKNOWN, UNKNOWN

        return DisplayInfo(
            resolution=f"{width} x {height}",
            density=density,
            density_bucket=bucket,
            refresh_rate=metrics.refresh_rate if metrics.refresh_rate is not None else -1.0,
            screen_size=size,
            orientation="Landscape" if width >= height else "Portrait",
        )


class NetworkProbe(Probe):
    facet_name = "network"
    facet = NetworkInfo

    def __init__(self, source: sources.NetworkSource, wireless_interface: str = "wlan0") -> None:
        self._source = source
        self._wireless_interface = wireless_interface

    def run(self) -> NetworkInfo:
        transports = self._field("transports", self._source.active_transports, set())
        network_type = next(
            (label for code, label in TRANSPORT_PRIORITY if code in transports),
            UNKNOWN,
        )

        wifi_connected = network_type == "WiFi"
        ssid = ip_address = signal = None
        if wifi_connected:
            ssid = self._field("ssid", self._source.wifi_ssid, None)
            packed = self._field("ip address", self._source.wifi_packed_address, None)
            ip_address = unpack_ipv4(packed) if packed is not None else None
            signal = self._field("signal strength", self._source.wifi_rssi, None)

        return NetworkInfo(
            wifi_enabled=self._field("wifi enabled", self._source.wifi_enabled, False),
            wifi_connected=wifi_connected,
            network_type=network_type,
            wifi_ssid=ssid.replace('"', "") if ssid else None,
            ip_address=ip_address,
            mac_address=self._mac_address(),
            signal_strength=signal,
        )

    def _mac_address(self) -> str | None:
        addresses = self._field("hardware addresses", self._source.hardware_addresses, {})
        wanted = self._wireless_interface.lower()
        for name, raw in addresses.items():
            if name.lower() == wanted and raw:
                return format_hardware_address(raw)
        return None


class SensorProbe(Probe):
    facet_name = "sensors"
    facet = SensorInfo

    def __init__(self, source: sources.SensorSource) -> None:
        self._source = source

    def run(self) -> SensorInfo:
        raw_sensors = (
            self._field("temperatures", self._source.temperature_sensors, [])
            + self._field("fans", self._source.fan_sensors, [])
            + self._field("iio", self._source.iio_sensors, [])
        )
        return SensorInfo(
            sensors=[
                SensorData(
                    name=raw.name,
                    type=decode(SENSOR_TYPES, raw.kind, f"{UNKNOWN} ({raw.kind})"),
                    vendor=raw.vendor,
                    version=raw.version,
                    power=raw.power,
                    resolution=raw.resolution,
                    maximum_range=raw.maximum_range,
                )
                for raw in raw_sensors
            ]
        )


class CameraProbe(Probe):
    facet_name = "cameras"
    facet = CameraInfo

    def __init__(self, source: sources.CameraSource) -> None:
        self._source = source

    def run(self) -> CameraInfo:
        if self._field("extended support", self._source.supports_extended, False):
            cameras = self._extended()
        else:
            cameras = [
                CameraData(id=camera_id, facing=decode(CAMERA_FACING, facing))
                for camera_id, facing in self._field("legacy cameras", self._source.legacy_cameras, [])
            ]
        return CameraInfo(cameras=cameras)

    def _extended(self) -> list[CameraData]:
        cameras: list[CameraData] = []
        for camera_id in self._field("camera ids", self._source.camera_ids, []):
            chars = self._field(
                f"camera {camera_id}",
                lambda camera_id=camera_id: self._source.characteristics(camera_id),
                None,
            )
            if chars is None:
                cameras.append(CameraData(id=camera_id, facing=UNKNOWN))
                continue

            largest = max(chars.output_sizes, key=lambda size: size[0] * size[1], default=None)
            cameras.append(
                CameraData(
                    id=camera_id,
                    facing=decode(CAMERA_FACING, chars.facing),
                    megapixels=format_megapixels(*largest) if largest else UNKNOWN,
                    supported_resolutions=[f"{w}x{h}" for w, h in chars.output_sizes],
                )
            )
        return cameras


class SystemProbe(Probe):
    facet_name = "system"
    facet = SystemInfo

    def __init__(self, source: sources.ClockSource) -> None:
        self._source = source

    def run(self) -> SystemInfo:
        boot = self._field("boot time", self._source.boot_time, None)
        now = self._field("clock", self._source.now, None)
        uptime = boot_time = UNKNOWN
        if boot is not None and now is not None:
            uptime = self._field("uptime", lambda: format_uptime(max(0.0, now - boot)), UNKNOWN)
            boot_time = self._field(
                "boot timestamp",
                lambda: datetime.fromtimestamp(boot).strftime(TIMESTAMP_FORMAT),
                UNKNOWN,
            )

        runtime_name, runtime_version = self._field(
            "runtime", self._source.runtime, (UNKNOWN, UNKNOWN)
        )
        return SystemInfo(
            uptime=uptime,
            boot_time=boot_time,
            timezone=self._field("timezone", self._source.timezone, UNKNOWN),
            locale=self._field("locale", self._source.locale, UNKNOWN),
            runtime_version=runtime_version,
            runtime_name=runtime_name,
        )


def host_probes(config: InsightConfig) -> list[Probe]:
    """Build the ten probes wired to the local machine."""
    return [
        IdentityProbe(sources.HostIdentitySource()),
        OSProbe(sources.HostOSSource()),
        HardwareProbe(sources.HostCpuSource(config)),
        MemoryProbe(sources.HostStorageSource(config)),
        PowerProbe(sources.HostPowerSource()),
        DisplayProbe(sources.HostDisplaySource()),
        NetworkProbe(sources.HostNetworkSource(), config.wireless_interface),
        SensorProbe(sources.HostSensorSource()),
        CameraProbe(sources.HostCameraSource()),
        SystemProbe(sources.HostClockSource()),
    ]
