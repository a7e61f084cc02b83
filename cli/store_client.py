"""HTTP client for communicating with the TeleStore transfer service."""

import os
import re
import time
import uuid
from pathlib import Path
from typing import Optional
from urllib.parse import unquote

import httpx

from common.logging_config import get_logger
from cli.config import Config
from cli.utils import (
    ProgressFileWrapper,
    clear_progress,
    end_progress,
    format_file_size,
    show_progress,
)

logger = get_logger(__name__)

_DISPOSITION_UTF8 = re.compile(r"filename\*=utf-8''([^;]+)", re.IGNORECASE)
_DISPOSITION_PLAIN = re.compile(r'filename="?([^";]+)"?', re.IGNORECASE)


def filename_from_disposition(header: Optional[str]) -> Optional[str]:
    """
    Extract the file name from a Content-Disposition header.

    Returns:
        Base name of the advertised file, or None if the header has none
    """
    if not header:
        return None
    match = _DISPOSITION_UTF8.search(header)
    if match:
        name = unquote(match.group(1))
    else:
        match = _DISPOSITION_PLAIN.search(header)
        if not match:
            return None
        name = match.group(1)
    name = os.path.basename(name.replace("\\", "/")).strip()
    return name or None


class StoreClient:
    """HTTP client for the transfer API with retry logic and error handling."""

    def __init__(self, config: Config):
        """
        Initialize store client.

        Args:
            config: Configuration instance
        """
        self.config = config
        self.session = httpx.Client(
            base_url=config.get_base_url(),
            timeout=config.get_timeout()
        )
        self.request_id = None
        logger.info(f"Initialized StoreClient [base_url={config.get_base_url()}]")

    def _request_with_retry(
        self,
        method: str,
        endpoint: str,
        max_retries: Optional[int] = None,
        **kwargs
    ) -> httpx.Response:
        """
        Make HTTP request with retry logic on 5xx errors and network failures.

        Only used for idempotent calls; uploads and downloads are sent once
        because the service already retries each part.

        Args:
            method: HTTP method (GET, POST, DELETE, etc.)
            endpoint: API endpoint path
            max_retries: Max retry attempts (uses config default if None)
            **kwargs: Additional arguments to pass to httpx request

        Returns:
            HTTP response object

        Raises:
            ConnectionError: If max retries exceeded or connection fails
        """
        retry_config = self.config.get_retry_config()
        max_retries = max_retries if max_retries is not None else retry_config['max_retries']
        backoff = retry_config['retry_backoff_multiplier']

        last_exception = None

        self.request_id = str(uuid.uuid4())
        kwargs.setdefault('headers', {})['X-Request-ID'] = self.request_id

        logger.debug(f"Making request: {method} {endpoint} [request_id={self.request_id}]")

        for attempt in range(max_retries + 1):
            try:
                response = self.session.request(method, endpoint, **kwargs)

                logger.debug(
                    f"Response received: {method} {endpoint} status={response.status_code} [request_id={self.request_id}]"
                )

                if 400 <= response.status_code < 500:
                    logger.warning(
                        f"Client error: {method} {endpoint} status={response.status_code} [request_id={self.request_id}]"
                    )
                    return response

                if response.status_code >= 500 and attempt < max_retries:
                    delay = backoff ** attempt
                    logger.warning(
                        f"Server error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} status={response.status_code}, retrying in {delay}s [request_id={self.request_id}]"
                    )
                    time.sleep(delay)
                    continue

                return response

            except (httpx.ConnectError, httpx.TimeoutException) as e:
                last_exception = e
                if attempt < max_retries:
                    delay = backoff ** attempt
                    logger.warning(
                        f"Network error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} error={type(e).__name__}, retrying in {delay}s [request_id={self.request_id}]"
                    )
                    time.sleep(delay)
                    continue
                logger.error(
                    f"Network error (max retries exceeded): {method} {endpoint} error={e} [request_id={self.request_id}]"
                )

        if isinstance(last_exception, httpx.ConnectError):
            raise ConnectionError("Cannot connect to transfer service. Is it running?")
        if isinstance(last_exception, httpx.TimeoutException):
            raise ConnectionError("Request timed out. Server may be overloaded.")
        raise ConnectionError("Max retries exceeded")

    def _format_error(self, response: httpx.Response) -> str:
        """
        Map HTTP errors to user-friendly messages.

        Args:
            response: HTTP response object

        Returns:
            User-friendly error message
        """
        try:
            error_data = response.json()
            detail = error_data.get('detail', 'Unknown error')
            code = error_data.get('code', 'UNKNOWN')
            reason = error_data.get('reason')
            part_index = error_data.get('part_index')
        except ValueError:
            detail = response.text if response.text else 'Unknown error'
            code = 'UNKNOWN'
            reason = None
            part_index = None

        reason_messages = {
            'NOT_AUTHENTICATED': 'Relay session is not authenticated. Check the relay bridge.',
            'UPLOAD_TIMEOUT': 'The relay did not confirm the upload in time.',
            'DOWNLOAD_TIMEOUT': 'The relay download stalled.',
            'RELAY_OPERATION_FAILED': 'The relay stopped the transfer.',
            'DOWNLOAD_VERIFICATION_FAILED': 'Downloaded data did not match the stored size.',
            'OBJECT_NOT_FOUND': 'No file stored under this reference.',
            'INCOMPLETE_SEQUENCE': 'Some parts of this file are missing on the relay.',
            'TRANSFER_CANCELLED': 'Transfer was cancelled.',
        }

        if code == 'TRANSFER_FAILED' and reason:
            message = reason_messages.get(reason, detail)
            if part_index:
                message = f"{message} (part {part_index})"
            return message

        if code in reason_messages:
            return reason_messages[code]
        if code == 'UNKNOWN_TRANSFER':
            return 'No active transfer with this id.'

        status_messages = {
            400: 'Bad request',
            404: 'Not found',
            500: 'Server error',
            502: 'Relay error',
            503: 'Service unavailable',
        }

        message = status_messages.get(response.status_code, detail)
        return f"{message}: {detail}" if detail and detail != message else message

    def upload(self, file_path: str) -> str:
        """
        Upload a local file.

        Args:
            file_path: Path of the file to upload

        Returns:
            Result message with the remote reference to keep for downloads
        """
        path = Path(file_path).expanduser()
        if not path.exists():
            return f"Error: File not found: {file_path}"
        if not path.is_file():
            return f"Error: Not a file: {file_path}"

        file_size = path.stat().st_size
        if file_size == 0:
            return f"Error: File is empty: {file_path}"

        logger.info(f"Uploading {path} ({file_size} bytes)")
        try:
            with ProgressFileWrapper(str(path), file_size, path.name) as stream:
                response = self.session.post(
                    '/transfers/upload',
                    files={'file': (path.name, stream)},
                    headers={'X-Request-ID': str(uuid.uuid4())},
                    timeout=self.config.get_transfer_timeout()
                )
        except httpx.ConnectError:
            clear_progress()
            return "Error: Cannot connect to transfer service. Is it running?"
        except httpx.TimeoutException:
            clear_progress()
            return f"Error: Upload timed out (file size: {format_file_size(file_size)})"

        if response.status_code != 201:
            logger.warning(f"Upload of {path} failed status={response.status_code}")
            return f"Error uploading {file_path}: {self._format_error(response)}"

        result = response.json()
        return (
            f"Uploaded: {result['file_name']} "
            f"(Size: {format_file_size(result['total_size'])}, "
            f"Parts: {result['part_count']}, Type: {result['file_type']})\n"
            f"Remote reference: {result['remote_ref']}"
        )

    def download(self, remote_ref: str, output_path: Optional[str] = None) -> str:
        """
        Download a file by remote reference with progress feedback.

        Args:
            remote_ref: Reference printed at upload time
            output_path: Optional target file or directory (default: ./downloads/<name>)

        Returns:
            Success message with download details
        """
        logger.info(f"Downloading {remote_ref} output_path={output_path}")
        try:
            with self.session.stream(
                'GET',
                '/transfers/download',
                params={'remote_ref': remote_ref},
                timeout=self.config.get_transfer_timeout()
            ) as response:
                if response.status_code != 200:
                    response.read()
                    return f"Error: {self._format_error(response)}"

                file_name = (
                    filename_from_disposition(response.headers.get('Content-Disposition'))
                    or remote_ref.replace(':', '_')
                )
                output_file = self._resolve_output(output_path, file_name)
                total_size = int(response.headers.get('Content-Length', 0))
                downloaded = 0

                with open(output_file, 'wb') as f:
                    for chunk in response.iter_bytes(chunk_size=65536):
                        f.write(chunk)
                        downloaded += len(chunk)
                        show_progress("Downloading", file_name, downloaded, total_size)
                end_progress()

                return f"Downloaded: {file_name} ({format_file_size(downloaded)})\nSaved to: {output_file.absolute()}"

        except httpx.ConnectError:
            return "Error: Cannot connect to transfer service. Is it running?"
        except httpx.TimeoutException:
            return "Error: Request timed out. Large files may need a higher transfer_timeout."
        except OSError as e:
            return f"Error writing file: {e}"

    @staticmethod
    def _resolve_output(output_path: Optional[str], file_name: str) -> Path:
        if output_path:
            output_file = Path(output_path).expanduser()
            if output_file.is_dir():
                output_file = output_file / file_name
        else:
            output_file = Path.cwd() / 'downloads' / file_name
        output_file.parent.mkdir(parents=True, exist_ok=True)
        return output_file

    def status(self) -> str:
        """Report relay session readiness."""
        try:
            response = self._request_with_retry('GET', '/relay/status')
        except ConnectionError as e:
            return f"Error: {e}"

        if response.status_code != 200:
            return f"Error: {self._format_error(response)}"

        data = response.json()
        if data['authenticated']:
            return "Relay: ready (initialized, authenticated)"
        if data['initialized']:
            return "Relay: initialized but not authenticated"
        return "Relay: not initialized"

    def list_transfers(self) -> str:
        """List queued and running transfers."""
        try:
            response = self._request_with_retry('GET', '/transfers')
        except ConnectionError as e:
            return f"Error: {e}"

        if response.status_code != 200:
            return f"Error: {self._format_error(response)}"

        transfers = response.json()['transfers']
        if not transfers:
            return "No active transfers."

        lines = [f"Found {len(transfers)} transfer(s):"]
        for t in transfers:
            lines.append(
                f"  {t['transfer_id']}  {t['direction']:<8} {t['state']:<10} "
                f"{t['parts_done']}/{t['part_count']} parts  "
                f"{format_file_size(t['bytes_done'])}  {t['name']}"
                + ("  (cancelling)" if t['cancel_requested'] else "")
            )
        return '\n'.join(lines)

    def cancel(self, transfer_id: str) -> str:
        """Request cancellation of an active transfer."""
        try:
            response = self._request_with_retry('DELETE', f'/transfers/{transfer_id}', max_retries=0)
        except ConnectionError as e:
            return f"Error: {e}"

        if response.status_code != 200:
            return f"Error: {self._format_error(response)}"
        return f"Cancellation requested for {transfer_id}; it stops after the current part."

    def close(self) -> None:
        """Close the HTTP session."""
        self.session.close()
