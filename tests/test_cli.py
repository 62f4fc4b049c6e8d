"""Tests for the command-line interface."""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from btsend.bluetooth import PeerHandle
from btsend.cli import EXIT_FAILED, cli, format_size

ENV = {'BTSEND_QUIESCE_DISCOVERY': 'false', 'BTSEND_CONNECT_TIMEOUT': '5'}


@pytest.fixture
def runner():
    return CliRunner()


def test_config_example(runner):
    result = runner.invoke(cli, ['config', '--example'], obj={})

    assert result.exit_code == 0
    assert json.loads(result.output)['chunk_size'] == 1024


def test_config_shows_effective_values(runner, tmp_path):
    path = tmp_path / 'btsend.json'
    path.write_text(json.dumps({'rfcomm_channel': 5}))

    result = runner.invoke(cli, ['--config', str(path), 'config'], obj={}, env=ENV)

    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data['rfcomm_channel'] == 5
    assert data['quiesce_discovery'] is False


def test_invalid_config_is_reported(runner, tmp_path):
    path = tmp_path / 'btsend.json'
    path.write_text(json.dumps({'transport': 'usb'}))

    result = runner.invoke(cli, ['--config', str(path), 'config'], obj={})

    assert result.exit_code != 0
    assert 'transport' in result.output


def test_send_over_tcp(runner, tmp_path, tcp_receiver):
    """Test the send command end to end over loopback."""
    path = tmp_path / 'report.pdf'
    path.write_bytes(b'%PDF' + b'\0' * 3000)

    result = runner.invoke(
        cli, ['send', '--tcp', f'127.0.0.1:{tcp_receiver.port}', str(path)],
        obj={}, env=ENV,
    )
    tcp_receiver.join()

    assert result.exit_code == 0, result.output
    assert 'File sent successfully' in result.output
    assert bytes(tcp_receiver.received) == path.read_bytes()


def test_send_connect_failure(runner, tmp_path, closed_port):
    path = tmp_path / 'notes.txt'
    path.write_bytes(b'hello')

    result = runner.invoke(
        cli, ['send', '--tcp', f'127.0.0.1:{closed_port}', str(path)],
        obj={}, env=ENV,
    )

    assert result.exit_code == EXIT_FAILED
    assert 'Could not connect' in result.output


def test_send_rejects_bad_chunk_size(runner, tmp_path):
    path = tmp_path / 'notes.txt'
    path.write_bytes(b'hello')

    result = runner.invoke(
        cli, ['send', '--tcp', '--chunk-size', '0', '127.0.0.1', str(path)],
        obj={}, env=ENV,
    )

    assert result.exit_code != 0
    assert 'chunk_size' in result.output


def test_peers_lists_paired_devices(runner):
    with patch('btsend.sender.BluezAdapter') as adapter_cls:
        adapter = adapter_cls.return_value
        adapter.is_available.return_value = True
        adapter.paired_devices.return_value = [
            PeerHandle('00:11:22:33:44:55', 'Pixel 7'),
        ]
        result = runner.invoke(cli, ['peers'], obj={}, env=ENV)

    assert result.exit_code == 0
    assert 'Pixel 7' in result.output
    assert '00:11:22:33:44:55' in result.output


def test_peers_without_bluez(runner):
    with patch('btsend.sender.BluezAdapter') as adapter_cls:
        adapter_cls.return_value.is_available.return_value = False
        result = runner.invoke(cli, ['peers'], obj={}, env=ENV)

    assert result.exit_code == EXIT_FAILED
    assert 'bluetoothctl not found' in result.output


@pytest.mark.parametrize('count,expected', [
    (0, '0.0 B'),
    (2500, '2.4 KB'),
    (5 * 1024 * 1024, '5.0 MB'),
])
def test_format_size(count, expected):
    assert format_size(count) == expected


def test_peers_with_adapter_powered_off(runner):
    with patch('btsend.sender.BluezAdapter') as adapter_cls:
        adapter = adapter_cls.return_value
        adapter.is_available.return_value = True
        adapter.is_powered.return_value = False
        result = runner.invoke(cli, ['peers'], obj={}, env=ENV)

    assert result.exit_code == EXIT_FAILED
    assert 'Bluetooth is powered off' in result.output
    adapter.paired_devices.assert_not_called()


def test_send_with_adapter_powered_off(runner, tmp_path):
    """Test that an RFCOMM send stops before dialing when the adapter is off."""
    path = tmp_path / 'notes.txt'
    path.write_bytes(b'hello')

    with patch('btsend.sender.BluezAdapter') as adapter_cls, \
            patch('btsend.sender.FileSender.send_path') as send_path:
        adapter = adapter_cls.return_value
        adapter.is_available.return_value = True
        adapter.is_powered.return_value = False
        result = runner.invoke(cli, ['send', '00:11:22:33:44:55', str(path)], obj={}, env=ENV)

    assert result.exit_code == EXIT_FAILED
    assert 'Bluetooth is powered off' in result.output
    send_path.assert_not_called()


def test_send_over_tcp_skips_power_check(runner, tmp_path, tcp_receiver):
    path = tmp_path / 'notes.txt'
    path.write_bytes(b'hello')

    with patch('btsend.sender.BluezAdapter') as adapter_cls:
        adapter_cls.return_value.is_powered.return_value = False
        result = runner.invoke(
            cli, ['send', '--tcp', f'127.0.0.1:{tcp_receiver.port}', str(path)],
            obj={}, env=ENV,
        )
    tcp_receiver.join()

    assert result.exit_code == 0, result.output
    assert bytes(tcp_receiver.received) == b'hello'
