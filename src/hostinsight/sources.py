"""
Host data sources for hostinsight.

Each probe depends on one narrow source interface. The Host* classes read the
local machine through psutil, the platform module and /sys or /proc files.
Source methods either return a value or raise; converting failures into
sentinel values is the probe's job, not the source's.
"""

import glob
import locale
import os
import platform
import re
import shutil
import socket
import subprocess
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Protocol

import psutil

from hostinsight.config import InsightConfig

SUBPROCESS_TIMEOUT = 2.0


def read_text(path: str | Path) -> str:
    """Read a small sysfs/procfs file, raising ValueError when it is empty."""
    value = Path(path).read_text(errors="ignore").strip()
    if not value:
        raise ValueError(f"{path} is empty")
    return value


# --- Raw readings -----------------------------------------------------------


@dataclass(slots=True, frozen=True)
class BatteryReading:
    """Raw battery values as the platform reports them. None means not reported."""

    level: int | None
    scale: int | None
    status: str | None = None
    health: str | None = None
    temperature_tenths: int | None = None  # Tenths of a degree Celsius
    voltage_mv: int | None = None
    technology: str | None = None
    plugged: str | None = None  # Supply type of the online charger, if any


@dataclass(slots=True, frozen=True)
class DisplayMetrics:
    width_px: int
    height_px: int
    dpi: int | None = None
    refresh_rate: float | None = None


@dataclass(slots=True, frozen=True)
class RawSensor:
    name: str
    kind: str  # Type code, e.g. 'temperature', 'accel'
    vendor: str
    version: int = -1
    power: float = -1.0
    resolution: float = -1.0
    maximum_range: float = -1.0


@dataclass(slots=True, frozen=True)
class CameraCharacteristics:
    facing: str  # Facing code: 'front', 'back', 'external'
    output_sizes: list[tuple[int, int]] = field(default_factory=list)


# --- Capability interfaces --------------------------------------------------


class IdentitySource(Protocol):
    def dmi(self, name: str) -> str: ...

    def hostname(self) -> str: ...

    def machine(self) -> str: ...


class OSSource(Protocol):
    def os_release(self) -> dict[str, str]: ...

    def kernel_release(self) -> str: ...

    def kernel_build(self) -> str: ...

    def python_build(self) -> str: ...


class CpuSource(Protocol):
    def architecture(self) -> str: ...

    def model_name(self) -> str: ...

    def logical_cores(self) -> int | None: ...

    def physical_cores(self) -> int | None: ...

    def max_frequency_raw(self) -> str: ...

    def flags(self) -> list[str]: ...


class StorageSource(Protocol):
    def ram(self) -> tuple[int, int]: ...

    def internal(self) -> tuple[int, int]: ...

    def external_mounted(self) -> bool: ...

    def external(self) -> tuple[int, int]: ...


class PowerSource(Protocol):
    def battery(self) -> BatteryReading | None: ...


class DisplaySource(Protocol):
    def metrics(self) -> DisplayMetrics | None: ...


class NetworkSource(Protocol):
    def wifi_enabled(self) -> bool: ...

    def active_transports(self) -> set[str]: ...

    def wifi_ssid(self) -> str | None: ...

    def wifi_packed_address(self) -> int | None: ...

    def wifi_rssi(self) -> int | None: ...

    def hardware_addresses(self) -> dict[str, bytes]: ...


class SensorSource(Protocol):
    def temperature_sensors(self) -> list[RawSensor]: ...

    def fan_sensors(self) -> list[RawSensor]: ...

    def iio_sensors(self) -> list[RawSensor]: ...


class CameraSource(Protocol):
    def supports_extended(self) -> bool: ...

    def camera_ids(self) -> list[str]: ...

    def characteristics(self, camera_id: str) -> CameraCharacteristics: ...

    def legacy_cameras(self) -> list[tuple[str, str]]: ...


class ClockSource(Protocol):
    def now(self) -> float: ...

    def boot_time(self) -> float: ...

    def timezone(self) -> str: ...

    def locale(self) -> str: ...

    def runtime(self) -> tuple[str, str]: ...


# --- Host implementations ---------------------------------------------------


class HostIdentitySource:
    """Machine identity from the DMI tables exposed in sysfs."""

    DMI_ROOT = Path("/sys/class/dmi/id")

    def dmi(self, name: str) -> str:
        return read_text(self.DMI_ROOT / name)

    def hostname(self) -> str:
        return platform.node() or socket.gethostname()

    def machine(self) -> str:
        machine = platform.machine()
        if not machine:
            raise ValueError("machine type not reported")
        return machine


class HostOSSource:
    OS_RELEASE_PATHS = ("/etc/os-release", "/usr/lib/os-release")

    def os_release(self) -> dict[str, str]:
        """Parse os-release(5) into a dict, trying the standard locations in order."""
        for path in self.OS_RELEASE_PATHS:
            try:
                text = Path(path).read_text(errors="ignore")
            except OSError:
                continue
            release: dict[str, str] = {}
            for line in text.splitlines():
                key, sep, value = line.strip().partition("=")
                if sep and not key.startswith("#"):
                    release[key] = value.strip().strip("\"'")
            return release
        raise FileNotFoundError("no os-release file found")

    def kernel_release(self) -> str:
        return platform.release()

    def kernel_build(self) -> str:
        return platform.version()

    def python_build(self) -> str:
        return " ".join(platform.python_build())


class HostCpuSource:
    def __init__(self, config: InsightConfig) -> None:
        self._frequency_path = config.cpu_frequency_path

    def _cpuinfo(self) -> dict[str, str]:
        info: dict[str, str] = {}
        with open("/proc/cpuinfo", errors="ignore") as f:
            for line in f:
                key, sep, value = line.partition(":")
                if not sep:
                    continue
                # First processor block is enough
                info.setdefault(key.strip(), value.strip())
        return info

    def architecture(self) -> str:
        return platform.machine() or platform.processor()

    def model_name(self) -> str:
        info = self._cpuinfo()
        for key in ("model name", "Model", "Hardware", "cpu model"):
            if info.get(key):
                return info[key]
        raise ValueError("CPU model not reported")

    def logical_cores(self) -> int | None:
        return psutil.cpu_count(logical=True)

    def physical_cores(self) -> int | None:
        return psutil.cpu_count(logical=False)

    def max_frequency_raw(self) -> str:
        return Path(self._frequency_path).read_text().strip()

    def flags(self) -> list[str]:
        info = self._cpuinfo()
        return (info.get("flags") or info.get("Features") or "").split()


class HostStorageSource:
    def __init__(self, config: InsightConfig) -> None:
        self._prefixes = config.external_mount_prefixes

    def ram(self) -> tuple[int, int]:
        mem = psutil.virtual_memory()
        return mem.total, mem.available

    def internal(self) -> tuple[int, int]:
        usage = psutil.disk_usage("/")
        return usage.total, usage.free

    def _external_mountpoint(self) -> str | None:
        for partition in psutil.disk_partitions(all=False):
            if partition.mountpoint.startswith(self._prefixes):
                return partition.mountpoint
        return None

    def external_mounted(self) -> bool:
        return self._external_mountpoint() is not None

    def external(self) -> tuple[int, int]:
        mountpoint = self._external_mountpoint()
        if mountpoint is None:
            raise FileNotFoundError("no external storage mounted")
        usage = psutil.disk_usage(mountpoint)
        return usage.total, usage.free


class HostPowerSource:
    """
    Battery state from /sys/class/power_supply.

    Falls back to psutil.sensors_battery() on systems without a sysfs battery
    node; that reading only carries a percentage and the plugged flag.
    """

    SUPPLY_ROOT = Path("/sys/class/power_supply")

    def _attr(self, supply: Path, name: str) -> str | None:
        try:
            return read_text(supply / name)
        except (OSError, ValueError):
            return None

    def _int_attr(self, supply: Path, name: str) -> int | None:
        value = self._attr(supply, name)
        try:
            return int(value) if value is not None else None
        except ValueError:
            return None

    def battery(self) -> BatteryReading | None:
        battery_dir: Path | None = None
        plugged: str | None = None
        for supply in sorted(self.SUPPLY_ROOT.glob("*")):
            supply_type = self._attr(supply, "type")
            if supply_type == "Battery" and battery_dir is None:
                battery_dir = supply
            elif supply_type and self._attr(supply, "online") == "1":
                plugged = supply_type

        if battery_dir is None:
            return self._psutil_battery()

        voltage_uv = self._int_attr(battery_dir, "voltage_now")
        return BatteryReading(
            level=self._int_attr(battery_dir, "capacity"),
            scale=100,
            status=self._attr(battery_dir, "status"),
            health=self._attr(battery_dir, "health"),
            temperature_tenths=self._int_attr(battery_dir, "temp"),
            voltage_mv=voltage_uv // 1000 if voltage_uv is not None else None,
            technology=self._attr(battery_dir, "technology"),
            plugged=plugged,
        )

    def _psutil_battery(self) -> BatteryReading | None:
        battery = psutil.sensors_battery()
        if battery is None:
            return None
        plugged = bool(battery.power_plugged)
        return BatteryReading(
            level=round(battery.percent),
            scale=100,
            status="Charging" if plugged else "Discharging",
            plugged="Mains" if plugged else None,
        )


class HostDisplaySource:
    """Primary display from the first connected DRM connector and its EDID."""

    DRM_ROOT = Path("/sys/class/drm")

    def metrics(self) -> DisplayMetrics | None:
        for connector in sorted(self.DRM_ROOT.glob("card*-*")):
            try:
                if read_text(connector / "status") != "connected":
                    continue
                mode = read_text(connector / "modes").splitlines()[0]
            except (OSError, ValueError, IndexError):
                continue
            match = re.match(r"(\d+)x(\d+)", mode)
            if not match:
                continue
            width, height = int(match.group(1)), int(match.group(2))
            try:
                edid = (connector / "edid").read_bytes()
            except OSError:
                edid = b""
            return DisplayMetrics(
                width_px=width,
                height_px=height,
                dpi=self._dpi(edid, width),
                refresh_rate=self._refresh_rate(edid),
            )
        return None

    @staticmethod
    def _dpi(edid: bytes, width_px: int) -> int | None:
        # Bytes 21/22: maximum image size in cm
        if len(edid) < 23 or edid[21] == 0:
            return None
        return round(width_px / (edid[21] / 2.54))

    @staticmethod
    def _refresh_rate(edid: bytes) -> float | None:
        # First detailed timing descriptor starts at byte 54
        if len(edid) < 72:
            return None
        pixel_clock = (edid[54] | edid[55] << 8) * 10_000
        h_total = (edid[56] | (edid[58] & 0xF0) << 4) + (edid[57] | (edid[58] & 0x0F) << 8)
        v_total = (edid[59] | (edid[61] & 0xF0) << 4) + (edid[60] | (edid[61] & 0x0F) << 8)
        if pixel_clock == 0 or h_total == 0 or v_total == 0:
            return None
        return round(pixel_clock / (h_total * v_total), 1)


class HostNetworkSource:
    CELLULAR_PREFIXES = ("wwan", "rmnet", "ppp", "ccmni")
    WIRED_PREFIXES = ("eth", "en", "em")

    def _transport(self, name: str) -> str | None:
        if os.path.isdir(f"/sys/class/net/{name}/wireless") or name.startswith("wl"):
            return "wifi"
        if name.startswith(self.CELLULAR_PREFIXES):
            return "cellular"
        if name.startswith(self.WIRED_PREFIXES):
            return "ethernet"
        return None

    def _ipv4(self, name: str) -> str | None:
        for addr in psutil.net_if_addrs().get(name, []):
            if addr.family == socket.AF_INET:
                return addr.address
        return None

    def _wireless_up(self) -> list[str]:
        return [
            name
            for name, stats in psutil.net_if_stats().items()
            if stats.isup and self._transport(name) == "wifi"
        ]

    def wifi_enabled(self) -> bool:
        return bool(self._wireless_up())

    def active_transports(self) -> set[str]:
        active: set[str] = set()
        for name, stats in psutil.net_if_stats().items():
            transport = self._transport(name)
            if transport and stats.isup and self._ipv4(name):
                active.add(transport)
        return active

    def wifi_ssid(self) -> str | None:
        result = subprocess.run(
            ["iwgetid", "-r"],
            capture_output=True,
            text=True,
            timeout=SUBPROCESS_TIMEOUT,
            check=True,
        )
        return result.stdout.strip() or None

    def wifi_packed_address(self) -> int | None:
        for name in self._wireless_up():
            address = self._ipv4(name)
            if address:
                return int.from_bytes(socket.inet_aton(address), "little")
        return None

    def wifi_rssi(self) -> int | None:
        # Header is two lines; columns: iface status link level noise ...
        with open("/proc/net/wireless") as f:
            lines = f.readlines()[2:]
        for line in lines:
            parts = line.split()
            if len(parts) >= 4:
                return int(float(parts[3].rstrip(".")))
        return None

    def hardware_addresses(self) -> dict[str, bytes]:
        addresses: dict[str, bytes] = {}
        for name, addrs in psutil.net_if_addrs().items():
            for addr in addrs:
                if addr.family == psutil.AF_LINK and addr.address:
                    addresses[name] = bytes.fromhex(re.sub(r"[:-]", "", addr.address))
        return addresses


class HostSensorSource:
    IIO_ROOT = "/sys/bus/iio/devices"

    def temperature_sensors(self) -> list[RawSensor]:
        sensors: list[RawSensor] = []
        for chip, entries in psutil.sensors_temperatures().items():
            for entry in entries:
                sensors.append(
                    RawSensor(
                        name=entry.label or chip,
                        kind="temperature",
                        vendor=chip,
                        maximum_range=float(entry.critical or entry.high or -1.0),
                    )
                )
        return sensors

    def fan_sensors(self) -> list[RawSensor]:
        return [
            RawSensor(name=entry.label or chip, kind="fan", vendor=chip)
            for chip, entries in psutil.sensors_fans().items()
            for entry in entries
        ]

    def iio_sensors(self) -> list[RawSensor]:
        sensors: list[RawSensor] = []
        for device in sorted(glob.glob(f"{self.IIO_ROOT}/iio:device*")):
            try:
                name = read_text(f"{device}/name")
            except (OSError, ValueError):
                name = os.path.basename(device)
            channels = sorted(
                entry for entry in os.listdir(device) if entry.startswith("in_")
            )
            if not channels:
                continue
            kind = re.split(r"[_\d]", channels[0][3:], maxsplit=1)[0]
            try:
                resolution = float(read_text(f"{device}/in_{kind}_scale"))
            except (OSError, ValueError):
                resolution = -1.0
            sensors.append(RawSensor(name=name, kind=kind, vendor="IIO", resolution=resolution))
        return sensors


class HostCameraSource:
    V4L_ROOT = Path("/sys/class/video4linux")

    def supports_extended(self) -> bool:
        return shutil.which("v4l2-ctl") is not None

    def camera_ids(self) -> list[str]:
        ids = []
        for node in sorted(self.V4L_ROOT.glob("video*")):
            # Only the primary node of each device; metadata nodes have index > 0
            try:
                if read_text(node / "index") != "0":
                    continue
            except (OSError, ValueError):
                pass
            ids.append(node.name)
        return ids

    def _facing(self, camera_id: str) -> str:
        node = self.V4L_ROOT / camera_id
        try:
            name = read_text(node / "name").lower()
        except (OSError, ValueError):
            name = ""
        if "rear" in name or "back" in name or "world" in name:
            return "back"
        if "front" in name or "integrated" in name or "user" in name:
            return "front"
        if "usb" in os.path.realpath(node / "device"):
            return "external"
        return "unknown"

    def characteristics(self, camera_id: str) -> CameraCharacteristics:
        result = subprocess.run(
            ["v4l2-ctl", "-d", f"/dev/{camera_id}", "--list-formats-ext"],
            capture_output=True,
            text=True,
            timeout=SUBPROCESS_TIMEOUT,
            check=True,
        )
        sizes: list[tuple[int, int]] = []
        for width, height in re.findall(r"Size: Discrete (\d+)x(\d+)", result.stdout):
            size = (int(width), int(height))
            if size not in sizes:
                sizes.append(size)
        return CameraCharacteristics(facing=self._facing(camera_id), output_sizes=sizes)

    def legacy_cameras(self) -> list[tuple[str, str]]:
        return [(camera_id, self._facing(camera_id)) for camera_id in self.camera_ids()]


class HostClockSource:
    def now(self) -> float:
        return time.time()

    def boot_time(self) -> float:
        return psutil.boot_time()

    def timezone(self) -> str:
        name = datetime.now().astimezone().tzname()
        if not name:
            raise ValueError("time zone not reported")
        return name

    def locale(self) -> str:
        language, encoding = locale.getlocale()
        if not language:
            raise ValueError("locale not set")
        return f"{language}.{encoding}" if encoding else language

    def runtime(self) -> tuple[str, str]:
        return platform.python_implementation(), platform.python_version()
