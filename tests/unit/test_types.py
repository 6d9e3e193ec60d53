"""
Unit tests for the fixed-layout parameter records.
"""

import struct

import msgspec
import pytest

from dobot_magician.errors import InvalidResponse
from dobot_magician.protocol.types import (
    CPCmd,
    CPMode,
    CPParams,
    DeviceVersion,
    EMotor,
    IOADC,
    IOFunction,
    IOMultiplexing,
    JOGCmd,
    JogCmd,
    ParallelOutputCmd,
    Pose,
    PTPCmd,
    PTPJointParams,
    PTPMode,
    TRIGADCCondition,
    TRIGCmd,
    TRIGMode,
    WAITCmd,
)


class TestLayouts:
    @pytest.mark.parametrize(
        "record,size",
        [
            (Pose, 32),
            (PTPCmd, 17),
            (CPCmd, 17),
            (CPParams, 13),
            (PTPJointParams, 32),
            (JOGCmd, 2),
            (WAITCmd, 4),
            (TRIGCmd, 7),
            (IOADC, 3),
            (EMotor, 6),
            (ParallelOutputCmd, 4),
            (DeviceVersion, 4),
        ],
    )
    def test_packed_sizes(self, record, size):
        assert record.size() == size

    def test_ptp_cmd_bytes(self):
        data = PTPCmd(PTPMode.MOVL_XYZ, 200.0, -10.0, 50.0, 0.0).pack()
        assert data[0] == 2
        assert struct.unpack("<4f", data[1:]) == (200.0, -10.0, 50.0, 0.0)

    def test_cp_cmd_uses_ieee_floats(self):
        data = CPCmd(CPMode.ABSOLUTE, 1.5, 2.25, -3.0, 100.0).pack()
        assert data[0] == 1
        assert data[1:5] == struct.pack("<f", 1.5)
        assert struct.unpack("<4f", data[1:]) == (1.5, 2.25, -3.0, 100.0)

    def test_trig_cmd_bytes(self):
        data = TRIGCmd(3, TRIGMode.ADC, TRIGADCCondition.GE, 512.0).pack()
        assert data[:3] == bytes((3, 1, 2))
        assert struct.unpack("<f", data[3:]) == (512.0,)

    def test_emotor_signed_speed(self):
        data = EMotor(0, True, -1000).pack()
        assert data == bytes((0, 1)) + struct.pack("<i", -1000)


class TestUnpack:
    def test_pose(self):
        raw = struct.pack("<8f", 200.0, 0.0, 50.0, 10.0, 0.0, 30.0, 45.0, 10.0)
        pose = Pose.unpack(raw)
        assert pose.x == 200.0
        assert pose.r == 10.0
        assert pose.joint_angle == (0.0, 30.0, 45.0, 10.0)

    def test_trailing_bytes_ignored(self):
        assert WAITCmd.unpack(struct.pack("<I", 250) + b"\xff\xff").timeout == 250

    def test_short_payload_raises(self):
        with pytest.raises(InvalidResponse):
            Pose.unpack(bytes(31))

    def test_enum_fields_decoded(self):
        io = IOMultiplexing.unpack(bytes((4, 3)))
        assert io.address == 4
        assert io.multiplex is IOFunction.DI
        jog = JOGCmd.unpack(bytes((1, 7)))
        assert jog.is_joint is True
        assert jog.cmd is JogCmd.DP_DOWN

    def test_invalid_enum_value_rejected(self):
        with pytest.raises(msgspec.ValidationError):
            IOMultiplexing.unpack(bytes((4, 9)))

    def test_version_str(self):
        assert str(DeviceVersion.unpack(bytes((3, 7, 0, 1)))) == "3.7.0 (hw 1)"

    def test_records_are_frozen(self):
        cmd = WAITCmd(10)
        with pytest.raises(AttributeError):
            cmd.timeout = 20  # type: ignore[misc]

    def test_pack_unpack_preserves_record(self):
        params = CPParams(100.0, 20.0, 50.0, True)
        assert CPParams.unpack(params.pack()) == params
