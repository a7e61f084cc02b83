"""Unit tests for StoreClient."""

import httpx
import pytest

from cli.store_client import StoreClient, filename_from_disposition


@pytest.fixture
def sample_file(tmp_path):
    path = tmp_path / "movie.mkv"
    path.write_bytes(b"x" * 2048)
    return path


@pytest.fixture
def mock_transport_success():
    """Mock transport that returns successful responses."""
    def handler(request):
        if request.url.path == '/transfers/upload' and request.method == 'POST':
            assert b'filename="movie.mkv"' in request.content
            return httpx.Response(201, json={
                'remote_ref': '-100777:41',
                'total_size': 2048,
                'part_count': 1,
                'file_name': 'movie.mkv',
                'file_type': 'video',
                'mime_type': 'video/x-matroska'
            })
        elif request.url.path == '/transfers/download':
            assert request.url.params['remote_ref'] == '-100777:41'
            return httpx.Response(
                200,
                content=b'reassembled',
                headers={'Content-Disposition': 'attachment; filename="movie.mkv"'}
            )
        elif request.url.path == '/relay/status':
            return httpx.Response(200, json={'initialized': True, 'authenticated': True})
        elif request.url.path == '/transfers' and request.method == 'GET':
            return httpx.Response(200, json={'transfers': [{
                'transfer_id': 'abc123',
                'direction': 'upload',
                'name': 'movie.mkv',
                'state': 'in_flight',
                'parts_done': 1,
                'part_count': 3,
                'bytes_done': 1024,
                'cancel_requested': False,
                'created_at': '2025-01-01T00:00:00+00:00',
                'error': None,
                'jobs': []
            }]})
        elif request.url.path == '/transfers/abc123' and request.method == 'DELETE':
            return httpx.Response(200, json={'transfer_id': 'abc123', 'cancel_requested': True})

        return httpx.Response(404, json={'detail': 'Not Found'})

    return httpx.MockTransport(handler)


def _client(config, handler_or_transport):
    transport = handler_or_transport
    if not isinstance(transport, httpx.MockTransport):
        transport = httpx.MockTransport(handler_or_transport)
    client = StoreClient(config)
    client.session = httpx.Client(transport=transport, base_url='http://test')
    return client


@pytest.fixture
def client_with_mock(temp_config, mock_transport_success):
    """Create StoreClient with mocked HTTP transport."""
    return _client(temp_config, mock_transport_success)


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr('cli.store_client.time.sleep', lambda seconds: None)


def test_upload_success(client_with_mock, sample_file):
    result = client_with_mock.upload(str(sample_file))

    assert 'Uploaded: movie.mkv' in result
    assert 'Parts: 1' in result
    assert 'Remote reference: -100777:41' in result


def test_upload_file_not_found(client_with_mock):
    assert 'File not found' in client_with_mock.upload('/nonexistent/file.bin')


def test_upload_directory(client_with_mock, tmp_path):
    assert 'Not a file' in client_with_mock.upload(str(tmp_path))


def test_upload_empty_file(client_with_mock, tmp_path):
    empty = tmp_path / 'empty.bin'
    empty.write_bytes(b'')
    assert 'File is empty' in client_with_mock.upload(str(empty))


def test_upload_failure_names_part(temp_config, sample_file):
    def handler(request):
        return httpx.Response(502, json={
            'detail': 'not confirmed',
            'code': 'TRANSFER_FAILED',
            'reason': 'UPLOAD_TIMEOUT',
            'part_index': 2
        })

    result = _client(temp_config, handler).upload(str(sample_file))

    assert 'did not confirm the upload in time' in result
    assert '(part 2)' in result


def test_upload_connection_error(temp_config, sample_file):
    def handler(request):
        raise httpx.ConnectError('refused')

    result = _client(temp_config, handler).upload(str(sample_file))

    assert 'Cannot connect' in result


def test_download_to_directory(client_with_mock, tmp_path):
    out_dir = tmp_path / 'out'
    out_dir.mkdir()

    result = client_with_mock.download('-100777:41', str(out_dir))

    assert 'Downloaded: movie.mkv' in result
    assert (out_dir / 'movie.mkv').read_bytes() == b'reassembled'


def test_download_to_file_path(client_with_mock, tmp_path):
    target = tmp_path / 'nested' / 'copy.mkv'

    client_with_mock.download('-100777:41', str(target))

    assert target.read_bytes() == b'reassembled'


def test_download_default_location(client_with_mock, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    result = client_with_mock.download('-100777:41')

    assert (tmp_path / 'downloads' / 'movie.mkv').read_bytes() == b'reassembled'
    assert 'Saved to:' in result


def test_download_incomplete_sequence(temp_config, tmp_path):
    def handler(request):
        return httpx.Response(502, json={
            'detail': "Could not find part 3",
            'code': 'TRANSFER_FAILED',
            'reason': 'INCOMPLETE_SEQUENCE',
            'part_index': 3
        })

    out_dir = tmp_path / 'out'
    out_dir.mkdir()

    result = _client(temp_config, handler).download('-1:5', str(out_dir))

    assert result == "Error: Some parts of this file are missing on the relay. (part 3)"
    assert list(out_dir.iterdir()) == []


def test_download_not_authenticated(temp_config, tmp_path):
    def handler(request):
        return httpx.Response(503, json={'detail': 'Relay session is not ready', 'code': 'NOT_AUTHENTICATED'})

    result = _client(temp_config, handler).download('-1:5', str(tmp_path))

    assert 'not authenticated' in result


def test_status(client_with_mock):
    assert client_with_mock.status() == "Relay: ready (initialized, authenticated)"


def test_status_not_initialized(temp_config):
    def handler(request):
        return httpx.Response(200, json={'initialized': False, 'authenticated': False})

    assert _client(temp_config, handler).status() == "Relay: not initialized"


def test_status_retries_server_errors(temp_config):
    calls = []

    def handler(request):
        calls.append(request.headers['X-Request-ID'])
        if len(calls) < 3:
            return httpx.Response(500, json={'detail': 'boom', 'code': 'TRANSFER_ERROR'})
        return httpx.Response(200, json={'initialized': True, 'authenticated': False})

    result = _client(temp_config, handler).status()

    assert result == "Relay: initialized but not authenticated"
    assert len(calls) == 3


def test_status_gives_up_on_connection_errors(temp_config):
    temp_config.data['max_retries'] = 1

    def handler(request):
        raise httpx.ConnectError('refused')

    result = _client(temp_config, handler).status()

    assert result == "Error: Cannot connect to transfer service. Is it running?"


def test_list_transfers(client_with_mock):
    result = client_with_mock.list_transfers()

    assert 'Found 1 transfer(s)' in result
    assert 'abc123' in result
    assert '1/3 parts' in result


def test_list_transfers_empty(temp_config):
    def handler(request):
        return httpx.Response(200, json={'transfers': []})

    assert _client(temp_config, handler).list_transfers() == "No active transfers."


def test_cancel(client_with_mock):
    assert 'Cancellation requested for abc123' in client_with_mock.cancel('abc123')


def test_cancel_unknown(temp_config):
    def handler(request):
        return httpx.Response(404, json={'detail': 'No active transfer x', 'code': 'UNKNOWN_TRANSFER'})

    assert _client(temp_config, handler).cancel('x') == "Error: No active transfer with this id."


@pytest.mark.parametrize("header,expected", [
    ('attachment; filename="report.pdf"', 'report.pdf'),
    ("attachment; filename*=utf-8''r%C3%A9sum%C3%A9.pdf", 'résumé.pdf'),
    ('attachment; filename="../../etc/evil.txt"', 'evil.txt'),
    ('attachment', None),
    (None, None),
])
def test_filename_from_disposition(header, expected):
    assert filename_from_disposition(header) == expected
