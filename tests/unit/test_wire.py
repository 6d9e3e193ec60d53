"""
Unit tests for frame encoding and decoding.
"""

import pytest

from dobot_magician.errors import OversizeError
from dobot_magician.protocol.types import HOMEParams
from dobot_magician.protocol.wire import (
    MAX_PARAMS_LEN,
    FrameDecoder,
    Message,
    ProtocolId,
    checksum,
    encode_frame,
    id_name,
    protocol_id,
)


class TestEncode:
    def test_get_pose_request(self):
        frame = encode_frame(Message(ProtocolId.GET_POSE))
        assert frame == bytes.fromhex("AA AA 02 0A 00 F6")

    def test_queued_home_params(self):
        params = HOMEParams(200.0, 0.0, 0.0, 0.0).pack()
        assert params == bytes.fromhex("00 00 48 43") + bytes(12)

        frame = encode_frame(Message(ProtocolId.HOME_PARAMS, rw=True, is_queued=True, params=params))
        assert frame[:5] == bytes.fromhex("AA AA 12 1E 03")
        assert frame[5:-1] == params
        assert frame[-1] == 0x54

    def test_body_sums_to_zero(self):
        for message in (
            Message(ProtocolId.DEVICE_SN),
            Message(ProtocolId.PTP_CMD, rw=True, is_queued=True, params=bytes(range(17))),
            Message(ProtocolId.WIFI_SSID, rw=True, params=b"\xff" * MAX_PARAMS_LEN),
        ):
            frame = encode_frame(message)
            assert sum(frame[3:]) % 256 == 0
            assert frame[2] == len(message.params) + 2

    def test_ctrl_bits(self):
        assert Message(1).ctrl == 0
        assert Message(1, rw=True).ctrl == 1
        assert Message(1, is_queued=True).ctrl == 2
        assert Message(1, rw=True, is_queued=True).ctrl == 3

    def test_largest_payload_fits(self):
        frame = encode_frame(Message(ProtocolId.WIFI_SSID, rw=True, params=bytes(MAX_PARAMS_LEN)))
        assert frame[2] == 0xA9

    def test_oversize_rejected(self):
        with pytest.raises(OversizeError):
            encode_frame(Message(ProtocolId.WIFI_SSID, rw=True, params=bytes(MAX_PARAMS_LEN + 1)))

    def test_checksum_helper(self):
        assert checksum(10, 0, b"") == 0xF6


class TestDecode:
    def test_round_trip(self):
        messages = [
            Message(ProtocolId.GET_POSE),
            Message(ProtocolId.HOME_CMD, rw=True, is_queued=True, params=bytes(4)),
            Message(ProtocolId.DEVICE_NAME, rw=True, params=b"arm\x00"),
            Message(ProtocolId.WIFI_PASSWORD, rw=True, params=bytes(range(MAX_PARAMS_LEN))),
        ]
        decoder = FrameDecoder()
        stream = b"".join(encode_frame(m) for m in messages)
        assert decoder.feed(stream) == messages

    def test_byte_by_byte(self):
        message = Message(ProtocolId.PTP_CMD, rw=True, is_queued=True, params=bytes(17))
        decoder = FrameDecoder()
        out = []
        for b in encode_frame(message):
            out.extend(decoder.feed(bytes((b,))))
        assert out == [message]
        assert decoder.buffered == 0

    def test_resync_after_garbage(self):
        decoder = FrameDecoder()
        frame = encode_frame(Message(ProtocolId.GET_POSE))
        out = decoder.feed(b"\x01\x02\xaa\x03\xff\xaa" + frame)
        assert out == [Message(ProtocolId.GET_POSE)]
        assert decoder.skipped_bytes > 0

    def test_bad_checksum_then_good(self):
        decoder = FrameDecoder()
        out = decoder.feed(bytes.fromhex("AA AA 02 0A 00 F7 AA AA 02 0A 00 F6"))
        assert len(out) == 1
        assert out[0].id == ProtocolId.GET_POSE
        assert decoder.rejected_frames == 1

    def test_corrupted_payload_byte_dropped(self):
        first = bytearray(encode_frame(Message(ProtocolId.GET_POSE_L, params=b"\x00\x00\x80\x3f")))
        first[6] ^= 0x10
        second = encode_frame(Message(ProtocolId.DEVICE_TIME, params=b"\x01\x00\x00\x00"))
        out = FrameDecoder().feed(bytes(first) + second)
        assert [m.id for m in out] == [ProtocolId.DEVICE_TIME]

    def test_impossible_length_rejected(self):
        decoder = FrameDecoder()
        frame = encode_frame(Message(ProtocolId.GET_POSE))
        out = decoder.feed(b"\xaa\xaa\xaa\xaa" + b"\xaa\xaa\x01" + frame)
        assert out == [Message(ProtocolId.GET_POSE)]

    def test_frame_inside_rejected_candidate_found(self):
        # A bogus header whose declared length swallows a real frame
        frame = encode_frame(Message(ProtocolId.GET_POSE))
        out = FrameDecoder().feed(b"\xaa\xaa\x08\x00" + frame + bytes(6))
        assert out == [Message(ProtocolId.GET_POSE)]

    def test_trailing_sync_kept_between_chunks(self):
        decoder = FrameDecoder()
        frame = encode_frame(Message(ProtocolId.GET_POSE))
        assert decoder.feed(b"\x00\x00" + frame[:1]) == []
        assert decoder.buffered == 1
        assert decoder.feed(frame[1:]) == [Message(ProtocolId.GET_POSE)]

    def test_unknown_id_kept_as_int(self):
        frame = encode_frame(Message(5, params=b"\x01"))
        (message,) = FrameDecoder().feed(frame)
        assert message.id == 5
        assert not isinstance(message.id, ProtocolId)


class TestMessage:
    def test_scalar_readers(self):
        m = Message(ProtocolId.QUEUED_CMD_CURRENT_INDEX, params=(7).to_bytes(8, "little"))
        assert m.uint64() == 7
        assert m.uint32() == 7
        assert m.uint16() == 7
        assert m.as_bool()
        assert Message(ProtocolId.GET_POSE_L, params=b"\x00\x00\x80\x3f").float32() == 1.0
        assert m.ack_len == 8

    def test_from_ctrl(self):
        m = Message.from_ctrl(84, 3, b"\x01")
        assert m.id is ProtocolId.PTP_CMD
        assert m.rw and m.is_queued

    def test_repr_uses_names(self):
        assert "GET_POSE" in repr(Message(ProtocolId.GET_POSE))


class TestProtocolId:
    @pytest.mark.parametrize(
        "pid,value",
        [
            (ProtocolId.DEVICE_INFO, 6),
            (ProtocolId.GET_POSE, 10),
            (ProtocolId.ALARMS_STATE, 20),
            (ProtocolId.JOG_L_PARAMS, 74),
            (ProtocolId.PTP_PO_WITH_L_CMD, 89),
            (ProtocolId.ARC_COMMON_PARAMS, 103),
            (ProtocolId.IR_SWITCH, 138),
            (ProtocolId.LOST_STEP_DETECT, 171),
            (ProtocolId.PTP_TIME, 221),
            (ProtocolId.QUEUED_CMD_LEFT_SPACE, 247),
            (ProtocolId.QUEUED_CMD_MOTION_FINISH, 248),
        ],
    )
    def test_explicit_values(self, pid, value):
        assert int(pid) == value

    def test_gaps_are_not_assigned(self):
        assert protocol_id(5) == 5
        assert protocol_id(15) == 15
        assert id_name(5) == "UNKNOWN_5"
        assert id_name(10) == "GET_POSE"
