"""
Integration tests for DatagramServer over real loopback sockets.

Covers:
- The ACK round trip and full stage order for a first datagram
- One synthetic handshake/connect per remote endpoint
- Bind failures surfacing as an error event instead of an exception
- Teardown disconnecting every tracked peer before a single shutdown
- Closing from inside a handler
- Send failures surfacing as ``respond`` errors
- Socket errors surfacing as ``socket`` errors, including during close
"""

import asyncio
import errno
import socket
from unittest.mock import patch

import pytest

from stageline import DatagramServer, Stage


class TestDatagramRoundTrip:
    """Tests for the receive, acknowledge and respond path."""

    @pytest.mark.asyncio
    async def test_ack_round_trip(self, env, recorder, open_datagram_peer, free_udp_port):
        server = DatagramServer(recorder.handlers(), env=env, port=free_udp_port)

        assert await server.start() is True
        assert server.address.port == free_udp_port

        peer = await open_datagram_peer()
        peer.send(b'Hello', server.address.to_tuple())

        assert await peer.receive() == b'ACK: Hello'
        await recorder.wait_for('respondMessage')

        assert recorder.stages() == [
            'init',
            'listening',
            'receiveMessage',
            'handshake',
            'connect',
            'processMessage',
            'respondMessage',
        ]

        [(context, text)] = recorder.args('processMessage')
        assert text == 'Hello'
        assert context.peer.to_tuple() == peer.address

        [(_, response)] = recorder.args('respondMessage')
        assert response == b'ACK: Hello'

        await server.close()

    @pytest.mark.asyncio
    async def test_connect_fires_once_per_peer(self, env, recorder, open_datagram_peer, free_udp_port):
        server = DatagramServer(recorder.handlers(), env=env, port=free_udp_port)
        await server.start()

        peer = await open_datagram_peer()
        for message in (b'one', b'two', b'three'):
            peer.send(message, server.address.to_tuple())
            assert await peer.receive() == b'ACK: ' + message

        await recorder.wait_for('respondMessage', count=3)

        assert recorder.count('receiveMessage') == 3
        assert recorder.count('handshake') == 1
        assert recorder.count('connect') == 1
        assert recorder.errors() == []

        await server.close()

    @pytest.mark.asyncio
    async def test_handler_exception_does_not_stop_ack(self, env, recorder, open_datagram_peer, free_udp_port):
        handlers = recorder.handlers()
        handlers['processMessage'].insert(0, lambda context, text: 1 / 0)

        server = DatagramServer(handlers, env=env, port=free_udp_port)
        await server.start()

        peer = await open_datagram_peer()
        peer.send(b'still here', server.address.to_tuple())

        assert await peer.receive() == b'ACK: still here'
        await recorder.wait_for('respondMessage')

        [event] = recorder.errors()
        assert event.stage is Stage.PROCESS_MESSAGE
        assert isinstance(event.error, ZeroDivisionError)

        await server.close()


class TestDatagramBind:
    @pytest.mark.asyncio
    async def test_default_port_and_second_bind(self, env, make_recorder, open_datagram_peer):
        first = make_recorder()
        second = make_recorder()

        server = DatagramServer(first.handlers(), env=env)
        assert await server.start() is True
        assert server.address.to_tuple() == ('127.0.0.1', 41234)

        peer = await open_datagram_peer()
        peer.send(b'Hello', ('127.0.0.1', 41234))
        assert await peer.receive() == b'ACK: Hello'

        duplicate = DatagramServer(second.handlers(), env=env)
        assert await duplicate.start() is False

        [event] = second.errors()
        assert event.stage == 'bind'
        assert event.error.errno == errno.EADDRINUSE
        assert second.count('listening') == 0

        await duplicate.close()
        await server.close()

        assert first.errors() == []

    @pytest.mark.asyncio
    async def test_address_in_use(self, env, recorder, free_udp_port):
        blocker = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        blocker.bind(('127.0.0.1', free_udp_port))

        try:
            server = DatagramServer(recorder.handlers(), env=env, port=free_udp_port)

            assert await server.start() is False
            assert server.listening is False

            assert recorder.count('init') == 1
            assert recorder.count('listening') == 0

            [event] = recorder.errors()
            assert event.stage == 'bind'
            assert isinstance(event.error, OSError)
            assert event.error.errno == errno.EADDRINUSE
            assert event.args == ('127.0.0.1', free_udp_port)

            assert recorder.count('shutdown') == 1

            await server.close()
            assert recorder.count('shutdown') == 1

        finally:
            blocker.close()


class TestDatagramTeardown:
    """Tests for closing the server."""

    @pytest.mark.asyncio
    async def test_disconnect_each_peer_then_shutdown(self, env, recorder, open_datagram_peer, free_udp_port):
        server = DatagramServer(recorder.handlers(), env=env, port=free_udp_port)
        await server.start()

        first = await open_datagram_peer()
        second = await open_datagram_peer()

        for peer in (first, second):
            peer.send(b'hi', server.address.to_tuple())
            assert await peer.receive() == b'ACK: hi'

        await recorder.wait_for('respondMessage', count=2)

        before = len(recorder.calls)
        await server.close()

        assert recorder.stages()[before:] == ['disconnect', 'disconnect', 'shutdown']

        disconnected = [args[0].peer.to_tuple() for args in recorder.args('disconnect')]
        assert disconnected == [first.address, second.address]

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, env, recorder, free_udp_port):
        server = DatagramServer(recorder.handlers(), env=env, port=free_udp_port)
        await server.start()

        await server.close()
        await server.close()

        assert recorder.count('shutdown') == 1
        assert recorder.count('disconnect') == 0
        assert server.listening is False

    @pytest.mark.asyncio
    async def test_close_from_respond_handler(self, env, recorder, open_datagram_peer, free_udp_port):
        handlers = recorder.handlers()
        server = DatagramServer(handlers, env=env, port=free_udp_port)

        async def stop(context, response):
            await server.close()

        server.on('respondMessage', stop)
        await server.start()

        peer = await open_datagram_peer()
        peer.send(b'bye', server.address.to_tuple())

        assert await peer.receive() == b'ACK: bye'
        await recorder.wait_for('shutdown')

        assert recorder.stages()[-2:] == ['disconnect', 'shutdown']
        assert recorder.errors() == []

    @pytest.mark.asyncio
    async def test_context_manager(self, env, recorder, free_udp_port):
        async with DatagramServer(recorder.handlers(), env=env, port=free_udp_port) as server:
            assert server.listening is True

        assert recorder.stages() == ['init', 'listening', 'shutdown']

    @pytest.mark.asyncio
    async def test_datagrams_after_close_are_ignored(self, env, recorder, open_datagram_peer, free_udp_port):
        server = DatagramServer(recorder.handlers(), env=env, port=free_udp_port)
        await server.start()
        address = server.address.to_tuple()
        await server.close()

        peer = await open_datagram_peer()
        peer.send(b'late', address)

        with pytest.raises(asyncio.TimeoutError):
            await peer.receive(timeout=0.2)

        assert recorder.count('receiveMessage') == 0


class TestDatagramErrors:
    """Tests for send failures and socket errors."""

    @pytest.mark.asyncio
    async def test_send_failure_skips_respond_message(self, env, recorder, open_datagram_peer, free_udp_port):
        server = DatagramServer(recorder.handlers(), env=env, port=free_udp_port)
        await server.start()

        peer = await open_datagram_peer()
        failure = OSError(errno.EHOSTUNREACH, 'No route to host')

        with patch.object(server.adapter._transport, 'sendto', side_effect=failure):
            peer.send(b'Hello', server.address.to_tuple())
            await recorder.wait_for('error')

        [event] = recorder.errors()
        assert event.stage == 'respond'
        assert event.error is failure

        context, data = event.args
        assert context.peer.to_tuple() == peer.address
        assert data == b'ACK: Hello'

        assert recorder.count('processMessage') == 1
        assert recorder.count('respondMessage') == 0
        assert server.adapter.state.total_requests == 1
        assert server.adapter.state.total_responses == 0

        await server.close()

    @pytest.mark.asyncio
    async def test_error_received_keeps_serving(self, env, recorder, open_datagram_peer, free_udp_port):
        server = DatagramServer(recorder.handlers(), env=env, port=free_udp_port)
        await server.start()

        failure = ConnectionRefusedError(errno.ECONNREFUSED, 'Connection refused')
        server.adapter._protocol.error_received(failure)
        await recorder.wait_for('error')

        [event] = recorder.errors()
        assert event.stage == 'socket'
        assert event.error is failure
        assert event.args == ()

        assert server.listening is True

        peer = await open_datagram_peer()
        peer.send(b'after', server.address.to_tuple())
        assert await peer.receive() == b'ACK: after'

        await server.close()

    @pytest.mark.asyncio
    async def test_fatal_socket_error_is_reported_before_shutdown(self, env, recorder, free_udp_port):
        server = DatagramServer(recorder.handlers(), env=env, port=free_udp_port)
        await server.start()

        failure = OSError('fatal transport error')
        server.adapter._protocol.connection_lost(failure)
        await server.close()

        assert [event.stage for event in recorder.errors()] == ['socket']
        assert recorder.errors()[0].error is failure

        assert recorder.stages() == ['init', 'listening', 'error', 'shutdown']
        assert server.listening is False

    @pytest.mark.asyncio
    async def test_fatal_socket_error_closes_without_close_call(self, env, recorder, open_datagram_peer, free_udp_port):
        server = DatagramServer(recorder.handlers(), env=env, port=free_udp_port)
        await server.start()

        peer = await open_datagram_peer()
        peer.send(b'hi', server.address.to_tuple())
        assert await peer.receive() == b'ACK: hi'
        await recorder.wait_for('respondMessage')

        server.adapter._protocol.connection_lost(OSError('fatal transport error'))
        await recorder.wait_for('shutdown')

        assert recorder.stages()[-3:] == ['error', 'disconnect', 'shutdown']
        assert recorder.errors()[0].stage == 'socket'
