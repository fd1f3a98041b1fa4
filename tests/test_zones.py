"""
Tests des tables de zones de puissance et de frequence cardiaque.
"""
import pytest

from segmentiq.domain.services.zones import classify_hr_zone, classify_power_zone


class TestPowerZone:
    @pytest.mark.parametrize("avg_power,expected", [
        (100, "recovery"),
        (150, "endurance"),
        (200, "tempo"),
        (230, "sweet_spot"),
        (250, "threshold"),
        (280, "vo2max"),
        (300, "anaerobic"),
        (600, "anaerobic"),
    ])
    def test_ftp_250(self, avg_power, expected):
        assert classify_power_zone(avg_power, 250) == expected

    def test_lower_bound_inclusive(self):
        # 0.75 * 200 = 150 -> tempo, pas endurance
        assert classify_power_zone(150, 200) == "tempo"

    @pytest.mark.parametrize("avg_power,ftp", [(200, None), (200, 0), (0, 250), (None, 250)])
    def test_unknown(self, avg_power, ftp):
        assert classify_power_zone(avg_power, ftp) is None


class TestHrZone:
    @pytest.mark.parametrize("avg_hr,expected", [
        (100, "recovery"),
        (120, "endurance"),
        (150, "tempo"),
        (160, "threshold"),
        (175, "vo2max"),
        (190, "anaerobic"),
    ])
    def test_max_hr_190(self, avg_hr, expected):
        assert classify_hr_zone(avg_hr, 190) == expected

    def test_unknown_max_hr(self):
        assert classify_hr_zone(150, None) is None
