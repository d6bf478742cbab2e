"""Maps a Snapshot to ordered, collapsible display sections."""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

from hostinsight.models import (
    UNKNOWN,
    CameraInfo,
    DisplayInfo,
    HardwareInfo,
    MemoryInfo,
    NetworkInfo,
    OSInfo,
    Overview,
    PowerInfo,
    SensorInfo,
    Snapshot,
    SystemInfo,
)
from hostinsight.normalize import format_bytes, join_list, yes_no

# Only this section starts expanded
DEFAULT_EXPANDED = "overview"


@dataclass(slots=True, frozen=True)
class Item:
    label: str
    value: str


@dataclass(slots=True, frozen=True)
class Section:
    """
    One titled group of label/value items.

    `key` is the stable identity used for expansion state; `title` may carry a
    count (e.g. 'Sensors (3)') and change between snapshots.
    """

    key: str
    title: str
    items: list[Item] = field(default_factory=list)
    expanded: bool = False


def _number(value: float, suffix: str = "") -> str:
    """Render a numeric field, showing negative sentinels as 'Unknown'."""
    return UNKNOWN if value < 0 else f"{value}{suffix}"


def _size(value: int) -> str:
    return UNKNOWN if value < 0 else format_bytes(value)


def _overview(overview: Overview) -> list[Item]:
    return [
        Item("Manufacturer", overview.manufacturer),
        Item("Model", overview.model),
        Item("Brand", overview.brand),
        Item("Board", overview.board),
        Item("Bootloader", overview.bootloader),
        Item("Device", overview.device),
        Item("Product", overview.product),
        Item("Hardware", overview.hardware),
    ]


def _os(info: OSInfo) -> list[Item]:
    return [
        Item("Name", info.name),
        Item("Version", info.version),
        Item("Version ID", info.version_id),
        Item("Codename", info.codename),
        Item("Build ID", info.build_id),
        Item("Kernel Release", info.kernel_release),
        Item("Kernel Build", info.kernel_build),
        Item("Build Date", info.build_date),
        Item("Python Build", info.python_build),
    ]


def _hardware(info: HardwareInfo) -> list[Item]:
    return [
        Item("CPU Architecture", info.architecture),
        Item("CPU Model", info.cpu_model),
        Item("CPU Cores", _number(info.cores)),
        Item("Physical Cores", _number(info.physical_cores)),
        Item("CPU Frequency", info.cpu_frequency),
        Item("Instruction Sets", join_list(info.instruction_sets)),
    ]


def _memory(info: MemoryInfo) -> list[Item]:
    items = [
        Item("Total RAM", _size(info.total_ram)),
        Item("Available RAM", _size(info.available_ram)),
        Item("Used RAM", _size(info.used_ram)),
        Item("Total Internal Storage", _size(info.total_internal_storage)),
        Item("Available Internal Storage", _size(info.available_internal_storage)),
        Item("Used Internal Storage", _size(info.used_internal_storage)),
        Item("Has External Storage", yes_no(info.has_external_storage)),
    ]
    # Lines are omitted, not shown as Unknown, when external totals are absent
    if info.has_external_storage and info.total_external_storage is not None:
        items.append(Item("Total External Storage", format_bytes(info.total_external_storage)))
        if info.available_external_storage is not None:
            items.append(
                Item("Available External Storage", format_bytes(info.available_external_storage))
            )
    return items


def _power(info: PowerInfo) -> list[Item]:
    return [
        Item("Battery Level", _number(info.level, "%")),
        Item("Status", info.status),
        Item("Health", info.health),
        Item("Temperature", _number(info.temperature, "°C")),
        Item("Voltage", _number(info.voltage, " mV")),
        Item("Technology", info.technology),
        Item("Is Charging", yes_no(info.is_charging)),
        Item("Charging Source", info.charging_source),
    ]


def _display(info: DisplayInfo) -> list[Item]:
    return [
        Item("Screen Resolution", info.resolution),
        Item("Screen Density", _number(info.density, " dpi")),
        Item("Density Category", info.density_bucket),
        Item("Refresh Rate", _number(info.refresh_rate, " Hz")),
        Item("Screen Size", info.screen_size),
        Item("Orientation", info.orientation),
    ]


def _network(info: NetworkInfo) -> list[Item]:
    items = [
        Item("WiFi Enabled", yes_no(info.wifi_enabled)),
        Item("WiFi Connected", yes_no(info.wifi_connected)),
    ]
    if info.wifi_ssid is not None:
        items.append(Item("WiFi SSID", info.wifi_ssid))
    if info.ip_address is not None:
        items.append(Item("IP Address", info.ip_address))
    if info.mac_address is not None:
        items.append(Item("MAC Address", info.mac_address))
    items.append(Item("Network Type", info.network_type))
    if info.signal_strength is not None:
        items.append(Item("Signal Strength", f"{info.signal_strength} dBm"))
    return items


def _sensors(info: SensorInfo) -> list[Item]:
    return [
        Item(f"{index}. {sensor.name}", f"{sensor.type} - {sensor.vendor}")
        for index, sensor in enumerate(info.sensors, start=1)
    ]


def _cameras(info: CameraInfo) -> list[Item]:
    return [
        Item(
            f"Camera {index}",
            f"{camera.facing} - {camera.megapixels}" if camera.megapixels else camera.facing,
        )
        for index, camera in enumerate(info.cameras, start=1)
    ]


def _system(info: SystemInfo) -> list[Item]:
    return [
        Item("Uptime", info.uptime),
        Item("Boot Time", info.boot_time),
        Item("Timezone", info.timezone),
        Item("Locale", info.locale),
        Item("Runtime Version", info.runtime_version),
        Item("Runtime Name", info.runtime_name),
    ]


# (key, title builder, item builder) in display order
SECTION_LAYOUT: list[tuple[str, Callable[[Snapshot], str], Callable[[Snapshot], list[Item]]]] = [
    ("overview", lambda s: "Overview", lambda s: _overview(s.overview)),
    ("os", lambda s: "OS", lambda s: _os(s.os)),
    ("hardware", lambda s: "Hardware", lambda s: _hardware(s.hardware)),
    ("memory", lambda s: "Memory & Storage", lambda s: _memory(s.memory)),
    ("power", lambda s: "Power", lambda s: _power(s.power)),
    ("display", lambda s: "Display", lambda s: _display(s.display)),
    ("network", lambda s: "Network", lambda s: _network(s.network)),
    ("sensors", lambda s: f"Sensors ({len(s.sensors.sensors)})", lambda s: _sensors(s.sensors)),
    ("cameras", lambda s: f"Cameras ({len(s.cameras.cameras)})", lambda s: _cameras(s.cameras)),
    ("system", lambda s: "System", lambda s: _system(s.system)),
]


def build_sections(
    snapshot: Snapshot, expansion: Mapping[str, bool] | None = None
) -> list[Section]:
    """
    Build the ordered section list for a snapshot.

    Args:
        snapshot: Snapshot to render.
        expansion: Expansion flags by section key from earlier builds. Keys not
            present fall back to the default (only Overview expanded).
    """
    expansion = expansion or {}
    return [
        Section(
            key=key,
            title=title(snapshot),
            items=items(snapshot),
            expanded=expansion.get(key, key == DEFAULT_EXPANDED),
        )
        for key, title, items in SECTION_LAYOUT
    ]
