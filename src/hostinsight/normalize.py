"""Pure formatting and classification helpers shared by probes and presentation."""

import math
from collections.abc import Iterable, Mapping

from hostinsight.models import UNKNOWN

# (upper bound in dpi, bucket name), checked in order
DENSITY_BUCKETS: list[tuple[int, str]] = [
    (120, "LDPI"),
    (160, "MDPI"),
    (240, "HDPI"),
    (320, "XHDPI"),
    (480, "XXHDPI"),
    (640, "XXXHDPI"),
]
TOP_DENSITY_BUCKET = "ULTRA_HIGH"

# Baseline dpi where one density-independent pixel equals one pixel
BASELINE_DPI = 160


def format_bytes(size: int) -> str:
    """
    Format a byte count as a human-readable string.

    KB, MB and GB are shown with two decimals; plain bytes have none.
    GB is the largest unit used.
    """
    kb = size / 1024
    mb = kb / 1024
    gb = mb / 1024
    if gb >= 1:
        return f"{gb:.2f} GB"
    if mb >= 1:
        return f"{mb:.2f} MB"
    if kb >= 1:
        return f"{kb:.2f} KB"
    return f"{size} B"


def yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"


def join_list(items: Iterable[str]) -> str:
    """Join items with ', ' keeping source order and duplicates."""
    return ", ".join(items)


def format_frequency(khz: int) -> str:
    """Format a kernel cpufreq value (kHz) as whole MHz."""
    return f"{khz // 1000} MHz"


def density_bucket(dpi: int) -> str:
    """Classify a dpi value into its named density class."""
    for upper, name in DENSITY_BUCKETS:
        if dpi <= upper:
            return name
    return TOP_DENSITY_BUCKET


def screen_size(width_px: int, height_px: int, dpi: int) -> str:
    """
    Diagonal screen size in inches, to one decimal, with a trailing '"'.

    Pixels are converted to density-independent units before taking the
    diagonal, so the result is independent of the baseline.
    """
    density = dpi / BASELINE_DPI
    width_dp = width_px / density
    height_dp = height_px / density
    diagonal = math.sqrt(width_dp**2 + height_dp**2) / BASELINE_DPI
    return f'{diagonal:.1f}"'


def battery_percent(level: int | None, scale: int | None) -> int:
    """Battery level as a percentage, or -1 when it cannot be computed."""
    if level is None or scale is None or level < 0 or scale <= 0:
        return -1
    return round(level * 100 / scale)


def unpack_ipv4(packed: int) -> str:
    """Unpack a 32-bit address stored little-endian into dotted decimal."""
    return ".".join(str((packed >> shift) & 0xFF) for shift in (0, 8, 16, 24))


def format_hardware_address(raw: bytes) -> str:
    """Render raw hardware address bytes as 'AA:BB:CC:DD:EE:FF'."""
    return ":".join(f"{b:02X}" for b in raw)


def format_uptime(seconds: float) -> str:
    """Format a duration as HH:MM:SS; hours are not wrapped at 24."""
    total = int(seconds)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_megapixels(width: int, height: int) -> str:
    return f"{width * height / 1_000_000:.1f} MP"


def decode(table: Mapping[object, str], code: object, default: str = UNKNOWN) -> str:
    """Look up a coded value, falling back to `default` for unrecognized codes."""
    return table.get(code, default)
