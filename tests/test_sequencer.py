"""
命令队列测试
============

测试先进先出顺序、单命令在途、帧间静默时间以及各类失败的结算。
"""

import pytest
import threading
import time
from unittest.mock import Mock

from daikin_modbus.core.frame_builder import FrameBuilder
from daikin_modbus.core.sequencer import CommandSequencer
from daikin_modbus.core.transport import SerialTransport
from daikin_modbus.exceptions import (
    CommandTimeout,
    ExceptionResponse,
    ChecksumMismatch,
    ProtocolViolation,
    TransportError,
)

from .conftest import make_read_response

SILENT_INTERVAL = 0.02
RECOVERY_INTERVAL = 0.05


class RespondingSlave:
    """
    模拟从站：每次写入后在另一个线程中回复

    同时检查线路上是否出现了两条同时在途的命令。
    """

    def __init__(self, delay=0.005, responder=None):
        self.sequencer = None
        self.delay = delay
        self.responder = responder or (lambda frame: make_read_response(frame[0], b'\x00\x01'))
        self.written = []  # (时间, 帧)
        self.outstanding = 0
        self.overlaps = 0
        self._lock = threading.Lock()

    def send(self, frame):
        with self._lock:
            if self.outstanding:
                self.overlaps += 1
            self.outstanding += 1
            self.written.append((time.monotonic(), bytes(frame)))
        response = self.responder(frame)
        if response is not None:
            delay = self.delay(frame) if callable(self.delay) else self.delay
            threading.Timer(delay, self._reply, args=(response,)).start()

    def _reply(self, response):
        with self._lock:
            self.outstanding -= 1
        self.sequencer.handle_frame(response)


def make_sequencer(slave=None, send_error=None, command_timeout=1.0, recovery_interval=RECOVERY_INTERVAL):
    transport = Mock(spec=SerialTransport)
    transport.is_open = True
    if slave is not None:
        transport.send.side_effect = slave.send
    elif send_error is not None:
        transport.send.side_effect = send_error
    sequencer = CommandSequencer(
        transport,
        silent_interval=SILENT_INTERVAL,
        command_timeout=command_timeout,
        recovery_interval=recovery_interval,
    )
    if slave is not None:
        slave.sequencer = sequencer
    return sequencer, transport


@pytest.fixture
def responding():
    slave = RespondingSlave()
    sequencer, transport = make_sequencer(slave)
    sequencer.start()
    yield sequencer, slave, transport
    sequencer.stop()


class TestOrdering:
    """测试顺序与间隔"""

    def test_fifo_one_in_flight_with_spacing(self, responding):
        """A、B、C 依次发送，同一时刻只有一条在途，间隔不小于静默时间"""
        sequencer, slave, _ = responding
        frames = [FrameBuilder.build_read_input_registers(1, 30001 + i, 1) for i in range(3)]

        futures = [sequencer.enqueue(frame) for frame in frames]
        results = [future.result(timeout=2) for future in futures]

        assert [frame for _, frame in slave.written] == frames
        assert slave.overlaps == 0
        times = [t for t, _ in slave.written]
        for earlier, later in zip(times, times[1:]):
            assert later - earlier >= SILENT_INTERVAL * 0.9
        assert all(result == make_read_response(1, b'\x00\x01') for result in results)

    def test_concurrent_enqueue(self, responding):
        """多个线程同时入队，每条命令都被发送且结算"""
        sequencer, slave, _ = responding
        futures = []
        lock = threading.Lock()

        def worker(i):
            future = sequencer.enqueue(FrameBuilder.build_read_input_registers(1, 32001 + i, 1))
            with lock:
                futures.append(future)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        for future in futures:
            future.result(timeout=3)
        assert len(slave.written) == 5
        assert slave.overlaps == 0

    def test_statistics(self, responding):
        """统计信息包含发送数量"""
        sequencer, _, _ = responding
        sequencer.enqueue(FrameBuilder.build_read_input_registers(1, 30001, 1)).result(timeout=2)

        stats = sequencer.get_statistics()
        assert stats["commands_sent"] == 1
        assert stats["pending"] == 0
        assert stats["running"] is True


class TestFailures:
    """测试失败的结算只影响对应命令"""

    def test_exception_response_does_not_abort_queue(self):
        """第一条收到异常响应，第二条照常成功"""
        def responder(frame):
            if frame[2:4] == b'\x00\x00':
                return b'\x01\x84\x02'
            return make_read_response(1, b'\x00\x07')

        slave = RespondingSlave(responder=responder)
        sequencer, _ = make_sequencer(slave)
        with sequencer:
            first = sequencer.enqueue(FrameBuilder.build_read_input_registers(1, 30001, 1))
            second = sequencer.enqueue(FrameBuilder.build_read_input_registers(1, 30002, 1))

            with pytest.raises(ExceptionResponse):
                first.result(timeout=2)
            assert second.result(timeout=2) == make_read_response(1, b'\x00\x07')

    def test_checksum_mismatch(self):
        """CRC错误结算为ChecksumMismatch"""
        def responder(frame):
            response = bytearray(make_read_response(1, b'\x00\x01'))
            response[-1] ^= 0xFF
            return bytes(response)

        slave = RespondingSlave(responder=responder)
        sequencer, _ = make_sequencer(slave)
        with sequencer:
            future = sequencer.enqueue(FrameBuilder.build_read_input_registers(1, 30001, 1))
            with pytest.raises(ChecksumMismatch):
                future.result(timeout=2)

    def test_timeout_then_next_command_proceeds(self):
        """无响应的命令超时，下一条命令继续执行"""
        def responder(frame):
            if frame[2:4] == b'\x00\x00':
                return None  # 不回复
            return make_read_response(1, b'\x00\x01')

        slave = RespondingSlave(responder=responder)
        sequencer, transport = make_sequencer(slave, command_timeout=0.1)
        with sequencer:
            first = sequencer.enqueue(FrameBuilder.build_read_input_registers(1, 30001, 1))
            second = sequencer.enqueue(FrameBuilder.build_read_input_registers(1, 30002, 1))

            with pytest.raises(CommandTimeout):
                first.result(timeout=2)
            assert second.result(timeout=2) == make_read_response(1, b'\x00\x01')

        assert sequencer.commands_timed_out == 1
        transport.discard_input.assert_called()

    def test_late_response_not_credited_to_next_command(self):
        """超时命令的迟到响应被丢弃，下一条命令拿到自己的数据"""
        def responder(frame):
            if frame[2:4] == b'\x00\x00':
                return make_read_response(1, b'\xaa\xaa')
            return make_read_response(1, b'\x00\x02')

        # 第一条的响应在超时之后、恢复时间结束之前到达
        slave = RespondingSlave(
            delay=lambda frame: 0.15 if frame[2:4] == b'\x00\x00' else 0.005,
            responder=responder,
        )
        sequencer, _ = make_sequencer(slave, command_timeout=0.1, recovery_interval=0.2)
        with sequencer:
            first = sequencer.enqueue(FrameBuilder.build_read_input_registers(1, 30001, 1))
            second = sequencer.enqueue(FrameBuilder.build_read_input_registers(1, 30002, 1))

            with pytest.raises(CommandTimeout):
                first.result(timeout=2)
            assert second.result(timeout=3) == make_read_response(1, b'\x00\x02')

        assert sequencer.frames_unexpected == 1
        assert sequencer.commands_timed_out == 1

    def test_response_not_matching_request(self):
        """字节数与请求的寄存器数不符时结算为ProtocolViolation"""
        slave = RespondingSlave(responder=lambda frame: make_read_response(1, b'\x00\x01\x00\x02'))
        sequencer, _ = make_sequencer(slave)
        with sequencer:
            future = sequencer.enqueue(FrameBuilder.build_read_input_registers(1, 30001, 1))
            with pytest.raises(ProtocolViolation):
                future.result(timeout=2)
        assert sequencer.commands_failed == 1

    def test_send_failure(self):
        """串口发送失败结算为TransportError，不等待超时"""
        sequencer, _ = make_sequencer(send_error=TransportError("串口写入失败"))
        with sequencer:
            future = sequencer.enqueue(FrameBuilder.build_read_input_registers(1, 30001, 1))
            with pytest.raises(TransportError):
                future.result(timeout=2)
        assert sequencer.get_statistics()["commands_failed"] == 1

    def test_transport_error_fails_sent_command(self):
        """IO线程报告的串口错误结算在途命令"""
        sequencer, transport = make_sequencer(command_timeout=5.0)
        sent = threading.Event()
        transport.send.side_effect = lambda frame: sent.set()
        with sequencer:
            future = sequencer.enqueue(FrameBuilder.build_read_input_registers(1, 30001, 1))
            assert sent.wait(2)
            sequencer.handle_error(OSError("port vanished"))

            with pytest.raises(TransportError):
                future.result(timeout=2)

    def test_stop_fails_pending_commands(self):
        """停止队列时未结算的命令以TransportError结束"""
        sequencer, _ = make_sequencer(command_timeout=10.0)
        sequencer.start()
        futures = [
            sequencer.enqueue(FrameBuilder.build_read_input_registers(1, 30001 + i, 1))
            for i in range(2)
        ]
        time.sleep(SILENT_INTERVAL * 3)

        assert sequencer.stop() is True
        for future in futures:
            with pytest.raises(TransportError):
                future.result(timeout=1)


class TestUnexpectedFrames:
    """测试没有在途命令时收到的帧"""

    def test_frame_without_command_dropped(self):
        """没有在途命令时丢弃响应"""
        sequencer, _ = make_sequencer()
        sequencer.handle_frame(make_read_response(1, b'\x00\x01'))
        assert sequencer.frames_unexpected == 1

    def test_frame_before_head_sent_dropped(self):
        """队首命令尚未发送时的响应不会结算它"""
        sequencer, _ = make_sequencer()
        future = sequencer.enqueue(FrameBuilder.build_read_input_registers(1, 30001, 1))

        sequencer.handle_frame(make_read_response(1, b'\x00\x01'))

        assert not future.done()
        assert sequencer.frames_unexpected == 1
        assert sequencer.pending_count == 1

    def test_error_without_command_ignored(self):
        """没有在途命令时的串口错误不抛异常"""
        sequencer, _ = make_sequencer()
        sequencer.handle_error(TransportError("x"))
        assert sequencer.pending_count == 0
