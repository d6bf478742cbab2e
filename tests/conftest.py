"""Deterministic fake sources and shared fixtures."""

import pytest

from hostinsight.aggregator import SnapshotAggregator
from hostinsight.models import Snapshot
from hostinsight.probes import (
    CameraProbe,
    DisplayProbe,
    HardwareProbe,
    IdentityProbe,
    MemoryProbe,
    NetworkProbe,
    OSProbe,
    PowerProbe,
    SensorProbe,
    SystemProbe,
)
from hostinsight.sources import (
    BatteryReading,
    CameraCharacteristics,
    DisplayMetrics,
    RawSensor,
)

GIB = 1024**3


class FailingSource:
    """Every method raises, as if the platform refused every query."""

    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise OSError(f"{name} unavailable")

        return fail


class FakeIdentitySource:
    def __init__(self, dmi=None):
        self._dmi = dmi if dmi is not None else {
            "sys_vendor": "Framework",
            "product_name": "Laptop 13",
            "chassis_vendor": "Framework",
            "board_name": "FRANMACP06",
            "bios_version": "03.05",
            "product_version": "A6",
        }

    def dmi(self, name):
        try:
            return self._dmi[name]
        except KeyError:
            raise FileNotFoundError(name) from None

    def hostname(self):
        return "workstation"

    def machine(self):
        return "x86_64"


class FakeOSSource:
    def os_release(self):
        return {
            "NAME": "Ubuntu",
            "VERSION": "24.04.1 LTS (Noble Numbat)",
            "VERSION_ID": "24.04",
            "VERSION_CODENAME": "noble",
        }

    def kernel_release(self):
        return "6.8.0-45-generic"

    def kernel_build(self):
        return "#45-Ubuntu SMP PREEMPT_DYNAMIC Fri Aug 30 12:02:04 UTC 2024"

    def python_build(self):
        return "main Sep  7 2024 18:35:41"


class FakeCpuSource:
    def __init__(self, frequency="3400000"):
        self._frequency = frequency

    def architecture(self):
        return "x86_64"

    def model_name(self):
        return "AMD Ryzen 7 7840U"

    def logical_cores(self):
        return 16

    def physical_cores(self):
        return 8

    def max_frequency_raw(self):
        if isinstance(self._frequency, Exception):
            raise self._frequency
        return self._frequency

    def flags(self):
        return ["fpu", "sse", "sse2", "avx", "avx2", "aes"]


class FakeStorageSource:
    def __init__(self, external_mounted=False, external=None):
        self._external_mounted = external_mounted
        self._external = external

    def ram(self):
        return 16 * GIB, 6 * GIB

    def internal(self):
        return 512 * GIB, 200 * GIB

    def external_mounted(self):
        return self._external_mounted

    def external(self):
        if isinstance(self._external, Exception):
            raise self._external
        if self._external is None:
            raise AssertionError("external() must not be called when unmounted")
        return self._external


class FakePowerSource:
    def __init__(self, reading=None, level=50):
        self._reading = reading or BatteryReading(
            level=level,
            scale=100,
            status="Discharging",
            health="Good",
            temperature_tenths=315,
            voltage_mv=15400,
            technology="Li-ion",
            plugged=None,
        )

    def battery(self):
        return self._reading


class FakeDisplaySource:
    def __init__(self, metrics=DisplayMetrics(2256, 1504, 201, 60.0)):
        self._metrics = metrics

    def metrics(self):
        return self._metrics


class FakeNetworkSource:
    def __init__(
        self,
        transports=("wifi",),
        ssid='"HomeNet"',
        packed=0x0A01A8C0,
        rssi=-56,
        addresses=None,
    ):
        self._transports = set(transports)
        self._ssid = ssid
        self._packed = packed
        self._rssi = rssi
        self._addresses = addresses if addresses is not None else {
            "lo": b"\x00" * 6,
            "wlan0": bytes.fromhex("a4c3f0851b2e"),
        }

    def _value(self, value):
        if isinstance(value, Exception):
            raise value
        return value

    def wifi_enabled(self):
        return "wifi" in self._transports

    def active_transports(self):
        return set(self._transports)

    def wifi_ssid(self):
        return self._value(self._ssid)

    def wifi_packed_address(self):
        return self._value(self._packed)

    def wifi_rssi(self):
        return self._value(self._rssi)

    def hardware_addresses(self):
        return self._value(self._addresses)


class FakeSensorSource:
    def __init__(self, temperatures=None, fans=None, iio=None):
        self._temperatures = temperatures if temperatures is not None else [
            RawSensor("Tctl", "temperature", "k10temp", maximum_range=100.0),
        ]
        self._fans = fans if fans is not None else [RawSensor("cpu_fan", "fan", "thinkpad")]
        self._iio = iio if iio is not None else [
            RawSensor("accel_3d", "accel", "IIO", resolution=0.0098),
        ]

    def _value(self, value):
        if isinstance(value, Exception):
            raise value
        return value

    def temperature_sensors(self):
        return self._value(self._temperatures)

    def fan_sensors(self):
        return self._value(self._fans)

    def iio_sensors(self):
        return self._value(self._iio)


class FakeCameraSource:
    def __init__(self, extended=True, cameras=None):
        self._extended = extended
        self._cameras = cameras if cameras is not None else {
            "video0": CameraCharacteristics("front", [(640, 480), (1920, 1080), (1280, 720)]),
        }

    def supports_extended(self):
        return self._extended

    def camera_ids(self):
        return list(self._cameras)

    def characteristics(self, camera_id):
        chars = self._cameras[camera_id]
        if isinstance(chars, Exception):
            raise chars
        return chars

    def legacy_cameras(self):
        return [
            (camera_id, getattr(chars, "facing", "unknown"))
            for camera_id, chars in self._cameras.items()
        ]


class FakeClockSource:
    BOOT = 1_700_000_000.0

    def __init__(self, uptime=3 * 3600 + 25 * 60 + 7):
        self._uptime = uptime

    def now(self):
        return self.BOOT + self._uptime

    def boot_time(self):
        return self.BOOT

    def timezone(self):
        return "UTC"

    def locale(self):
        return "en_US.UTF-8"

    def runtime(self):
        return "CPython", "3.12.3"


def make_probes(**overrides):
    """Ten probes on working fakes; pass facet_name=source to swap one source."""
    sources = {
        "overview": FakeIdentitySource(),
        "os": FakeOSSource(),
        "hardware": FakeCpuSource(),
        "memory": FakeStorageSource(),
        "power": FakePowerSource(),
        "display": FakeDisplaySource(),
        "network": FakeNetworkSource(),
        "sensors": FakeSensorSource(),
        "cameras": FakeCameraSource(),
        "system": FakeClockSource(),
    }
    sources.update(overrides)
    return [
        IdentityProbe(sources["overview"]),
        OSProbe(sources["os"]),
        HardwareProbe(sources["hardware"]),
        MemoryProbe(sources["memory"]),
        PowerProbe(sources["power"]),
        DisplayProbe(sources["display"]),
        NetworkProbe(sources["network"], "wlan0"),
        SensorProbe(sources["sensors"]),
        CameraProbe(sources["cameras"]),
        SystemProbe(sources["system"]),
    ]


class FakeProvider:
    """Snapshot provider that serves collect()/refresh() from a list of snapshots."""

    def __init__(self, snapshots=None, error=None):
        self.snapshots = list(snapshots or [])
        self.error = error
        self.calls = 0

    def collect(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        if len(self.snapshots) > 1:
            return self.snapshots.pop(0)
        return self.snapshots[0]

    def refresh(self):
        return self.collect()


@pytest.fixture
def aggregator():
    return SnapshotAggregator(make_probes(), timeout=2.0)


@pytest.fixture
def snapshot(aggregator) -> Snapshot:
    return aggregator.collect()
