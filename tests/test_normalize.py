"""Tests for the formatting helpers."""

import pytest

from hostinsight.normalize import (
    battery_percent,
    decode,
    density_bucket,
    format_bytes,
    format_frequency,
    format_hardware_address,
    format_megapixels,
    format_uptime,
    join_list,
    screen_size,
    unpack_ipv4,
    yes_no,
)


def test_format_bytes_zero():
    assert format_bytes(0) == "0 B"


def test_format_bytes_below_one_kilobyte():
    """Values under 1024 have no decimals."""
    assert format_bytes(1) == "1 B"
    assert format_bytes(1023) == "1023 B"


def test_format_bytes_unit_boundaries():
    assert format_bytes(1024) == "1.00 KB"
    assert format_bytes(1536) == "1.50 KB"
    assert format_bytes(1024 * 1024) == "1.00 MB"
    assert format_bytes(1024**3) == "1.00 GB"


def test_format_bytes_gigabytes_is_largest_unit():
    assert format_bytes(2048 * 1024**3) == "2048.00 GB"


def test_format_bytes_just_below_megabyte():
    assert format_bytes(1024 * 1024 - 1) == "1024.00 KB"


def test_yes_no():
    assert yes_no(True) == "Yes"
    assert yes_no(False) == "No"


def test_join_list_keeps_order_and_duplicates():
    assert join_list(["b", "a", "b"]) == "b, a, b"
    assert join_list([]) == ""


def test_format_frequency():
    assert format_frequency(3400000) == "3400 MHz"
    assert format_frequency(1799999) == "1799 MHz"


@pytest.mark.parametrize(
    ("dpi", "bucket"),
    [
        (120, "LDPI"),
        (121, "MDPI"),
        (160, "MDPI"),
        (161, "HDPI"),
        (240, "HDPI"),
        (320, "XHDPI"),
        (480, "XXHDPI"),
        (640, "XXXHDPI"),
        (641, "ULTRA_HIGH"),
    ],
)
def test_density_bucket(dpi, bucket):
    assert density_bucket(dpi) == bucket


def test_screen_size_at_baseline_density():
    # 3x4 inches at 160 dpi -> 5 inch diagonal
    assert screen_size(480, 640, 160) == '5.0"'


def test_screen_size_scales_with_density():
    assert screen_size(1080, 2400, 420) == '6.3"'


def test_battery_percent():
    assert battery_percent(50, 100) == 50
    assert battery_percent(3, 4) == 75
    assert battery_percent(0, 100) == 0


def test_battery_percent_sentinels():
    """Missing or invalid inputs give -1, never a division error."""
    assert battery_percent(50, 0) == -1
    assert battery_percent(50, -1) == -1
    assert battery_percent(-1, 100) == -1
    assert battery_percent(None, 100) == -1
    assert battery_percent(50, None) == -1


def test_unpack_ipv4_little_endian():
    assert unpack_ipv4(0x0100007F) == "127.0.0.1"
    assert unpack_ipv4(0x0A01A8C0) == "192.168.1.10"
    assert unpack_ipv4(0) == "0.0.0.0"


def test_format_hardware_address():
    assert format_hardware_address(bytes.fromhex("a4c3f0851b2e")) == "A4:C3:F0:85:1B:2E"
    assert format_hardware_address(b"\x00\x01") == "00:01"


def test_format_uptime():
    assert format_uptime(0) == "00:00:00"
    assert format_uptime(3 * 3600 + 25 * 60 + 7.9) == "03:25:07"
    assert format_uptime(50 * 3600) == "50:00:00"


def test_format_megapixels():
    assert format_megapixels(1920, 1080) == "2.1 MP"
    assert format_megapixels(4032, 3024) == "12.2 MP"


def test_decode_falls_back_for_unrecognized_codes():
    table = {"Good": "Good"}
    assert decode(table, "Good") == "Good"
    assert decode(table, "Melting") == "Unknown"
    assert decode(table, None) == "Unknown"
    assert decode(table, "x", default="Other") == "Other"
