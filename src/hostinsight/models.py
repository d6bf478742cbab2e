"""Data models for hostinsight."""

from dataclasses import dataclass, field
from datetime import datetime

UNKNOWN = "Unknown"


@dataclass(slots=True, frozen=True)
class Overview:
    """Identity of the machine."""

    manufacturer: str
    model: str
    brand: str
    board: str
    bootloader: str  # Firmware / BIOS version
    device: str  # Host name
    product: str
    hardware: str  # Machine type, e.g. 'x86_64'

    @classmethod
    def unknown(cls) -> "Overview":
        return cls(*([UNKNOWN] * 8))


@dataclass(slots=True, frozen=True)
class OSInfo:
    """Operating system and build metadata."""

    name: str
    version: str
    version_id: str
    codename: str
    build_id: str
    kernel_release: str
    kernel_build: str
    build_date: str
    python_build: str

    @classmethod
    def unknown(cls) -> "OSInfo":
        return cls(*([UNKNOWN] * 9))


@dataclass(slots=True, frozen=True)
class HardwareInfo:
    """CPU facts."""

    architecture: str
    cpu_model: str
    cores: int  # Logical, -1 when unknown
    physical_cores: int
    cpu_frequency: str  # e.g. '3400 MHz' or 'Unknown'
    instruction_sets: list[str] = field(default_factory=list)

    @classmethod
    def unknown(cls) -> "HardwareInfo":
        return cls(UNKNOWN, UNKNOWN, -1, -1, UNKNOWN, [])


@dataclass(slots=True, frozen=True)
class MemoryInfo:
    """RAM and storage totals, all in bytes."""

    total_ram: int
    available_ram: int
    used_ram: int
    total_internal_storage: int
    available_internal_storage: int
    used_internal_storage: int
    has_external_storage: bool
    # Populated as a pair: both set or both None
    total_external_storage: int | None = None
    available_external_storage: int | None = None

    def __post_init__(self) -> None:
        if (self.total_external_storage is None) != (self.available_external_storage is None):
            raise ValueError("external storage totals must be set together")

    @classmethod
    def unknown(cls) -> "MemoryInfo":
        return cls(-1, -1, -1, -1, -1, -1, False)


@dataclass(slots=True, frozen=True)
class PowerInfo:
    """Battery and charging state."""

    level: int  # Percent, -1 when unavailable (distinct from 0%)
    status: str
    health: str
    temperature: float  # Celsius
    voltage: int  # mV
    technology: str
    is_charging: bool
    charging_source: str

    @classmethod
    def unknown(cls) -> "PowerInfo":
        return cls(-1, UNKNOWN, UNKNOWN, -1.0, -1, UNKNOWN, False, UNKNOWN)


@dataclass(slots=True, frozen=True)
class DisplayInfo:
    """Primary display metrics."""

    resolution: str  # 'W x H'
    density: int  # dpi
    density_bucket: str
    refresh_rate: float  # Hz
    screen_size: str  # Diagonal, e.g. '15.6"'
    orientation: str

    @classmethod
    def unknown(cls) -> "DisplayInfo":
        return cls(UNKNOWN, -1, UNKNOWN, -1.0, UNKNOWN, UNKNOWN)


@dataclass(slots=True, frozen=True)
class NetworkInfo:
    """Connectivity state. Optional fields stay None when access fails."""

    wifi_enabled: bool
    wifi_connected: bool
    network_type: str
    wifi_ssid: str | None = None
    ip_address: str | None = None
    mac_address: str | None = None
    signal_strength: int | None = None  # dBm

    @classmethod
    def unknown(cls) -> "NetworkInfo":
        return cls(False, False, UNKNOWN)


@dataclass(slots=True, frozen=True)
class SensorData:
    """A single hardware sensor."""

    name: str
    type: str
    vendor: str
    version: int = -1
    power: float = -1.0  # mA
    resolution: float = -1.0
    maximum_range: float = -1.0


@dataclass(slots=True, frozen=True)
class SensorInfo:
    sensors: list[SensorData] = field(default_factory=list)

    @classmethod
    def unknown(cls) -> "SensorInfo":
        return cls([])


@dataclass(slots=True, frozen=True)
class CameraData:
    """A single camera. Resolution fields are absent on the simple enumeration path."""

    id: str
    facing: str
    megapixels: str | None = None
    supported_resolutions: list[str] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class CameraInfo:
    cameras: list[CameraData] = field(default_factory=list)

    @classmethod
    def unknown(cls) -> "CameraInfo":
        return cls([])


@dataclass(slots=True, frozen=True)
class SystemInfo:
    """Clock, uptime and runtime facts."""

    uptime: str  # HH:MM:SS
    boot_time: str
    timezone: str
    locale: str
    runtime_version: str
    runtime_name: str

    @classmethod
    def unknown(cls) -> "SystemInfo":
        return cls(*([UNKNOWN] * 6))


Facet = (
    Overview
    | OSInfo
    | HardwareInfo
    | MemoryInfo
    | PowerInfo
    | DisplayInfo
    | NetworkInfo
    | SensorInfo
    | CameraInfo
    | SystemInfo
)


@dataclass(slots=True, frozen=True)
class Snapshot:
    """Immutable aggregation of all ten facets at one point in time."""

    overview: Overview
    os: OSInfo
    hardware: HardwareInfo
    memory: MemoryInfo
    power: PowerInfo
    display: DisplayInfo
    network: NetworkInfo
    sensors: SensorInfo
    cameras: CameraInfo
    system: SystemInfo
    collected_at: datetime = field(default_factory=datetime.now, compare=False)

    # Facet attribute name -> record type, in presentation order
    FACETS = {
        "overview": Overview,
        "os": OSInfo,
        "hardware": HardwareInfo,
        "memory": MemoryInfo,
        "power": PowerInfo,
        "display": DisplayInfo,
        "network": NetworkInfo,
        "sensors": SensorInfo,
        "cameras": CameraInfo,
        "system": SystemInfo,
    }

    def facets(self) -> list[Facet]:
        """Return the ten facet records in presentation order."""
        return [getattr(self, name) for name in self.FACETS]

    @classmethod
    def unknown(cls) -> "Snapshot":
        """Snapshot where every facet is sentinel-filled."""
        return cls(**{name: record.unknown() for name, record in cls.FACETS.items()})
