"""
Tests for the display state publisher.
"""

import json
from unittest import mock

import pytest
import zmq

from school_signage.common.ipc import MessagePublisher, MessageType, StateMessage


@pytest.fixture
def zmq_context():
    with mock.patch('school_signage.common.ipc.zmq.Context') as context_cls, \
            mock.patch('school_signage.common.ipc.time.sleep'):
        yield context_cls.return_value


def sent_frames(zmq_context):
    return [c[0][0] for c in zmq_context.socket.return_value.send_string.call_args_list]


class TestStateMessage:
    """Tests for the wire format."""

    def test_encode(self):
        message = StateMessage(MessageType.THEME, {'properties': {'--a': '1'}}, 7, sent_at=1.0)
        topic, body = message.encode().split(' ', 1)

        assert topic == 'theme'
        assert json.loads(body) == {'seq': 7, 'sent_at': 1.0, 'data': {'properties': {'--a': '1'}}}

    def test_decode(self):
        frame = 'emergency ' + json.dumps({'seq': 3, 'sent_at': 2.0, 'data': {'active': False}})
        message = StateMessage.decode(frame)

        assert message.msg_type is MessageType.EMERGENCY
        assert message.sequence == 3
        assert message.data == {'active': False}

    def test_decode_unknown_topic(self):
        with pytest.raises(ValueError):
            StateMessage.decode('weather {"seq": 1, "sent_at": 1.0, "data": {}}')


class TestMessagePublisher:
    """Tests for MessagePublisher with a mocked ZeroMQ context."""

    def test_binds_pub_socket(self, zmq_context):
        MessagePublisher(port=5561)
        zmq_context.socket.assert_called_once_with(zmq.PUB)
        zmq_context.socket.return_value.bind.assert_called_once_with("tcp://*:5561")

    def test_sequence_increases(self, zmq_context):
        publisher = MessagePublisher()
        publisher.publish(MessageType.SLIDES, {'slides': []})
        publisher.publish(MessageType.SLIDESHOW, {'index': 0, 'slide_id': '1'})

        decoded = [StateMessage.decode(f) for f in sent_frames(zmq_context)]
        assert [m.sequence for m in decoded] == [1, 2]
        assert decoded[0].msg_type is MessageType.SLIDES

    def test_republish_sends_latest_per_topic(self, zmq_context):
        publisher = MessagePublisher()
        publisher.publish(MessageType.GENERAL, {'school_name': 'Old'})
        publisher.publish(MessageType.GENERAL, {'school_name': 'New'})
        publisher.publish(MessageType.THEME, {'properties': {}})

        assert publisher.republish() == 2
        resent = [StateMessage.decode(f) for f in sent_frames(zmq_context)[3:]]
        assert {m.msg_type: m.data for m in resent} == {
            MessageType.GENERAL: {'school_name': 'New'},
            MessageType.THEME: {'properties': {}},
        }
        assert publisher.last_state(MessageType.GENERAL) == {'school_name': 'New'}
        assert publisher.last_state(MessageType.EMERGENCY) is None

    def test_publish_error_not_raised(self, zmq_context):
        zmq_context.socket.return_value.send_string.side_effect = zmq.ZMQError()
        publisher = MessagePublisher()
        publisher.publish(MessageType.THEME, {})
        assert publisher.last_state(MessageType.THEME) == {}

    def test_close(self, zmq_context):
        publisher = MessagePublisher()
        publisher.close()
        zmq_context.socket.return_value.close.assert_called_once_with(linger=0)
        zmq_context.term.assert_called_once()
