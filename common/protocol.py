"""Shared RPC/protocol message definitions for the relay bridge (serialization formats)."""

from dataclasses import dataclass, field
from typing import Optional, List
import json
import base64


@dataclass
class FileState:
    """Relay-side state of one stored file."""
    file_id: int
    size: int
    downloaded_size: int = 0
    uploaded_size: int = 0
    is_uploading_active: bool = False
    is_uploading_completed: bool = False
    is_downloading_active: bool = False
    is_downloading_completed: bool = False

    def to_dict(self) -> dict:
        return dict(self.__dict__)

    @classmethod
    def from_dict(cls, obj: dict) -> 'FileState':
        return cls(
            file_id=obj['file_id'],
            size=obj['size'],
            downloaded_size=obj.get('downloaded_size', 0),
            uploaded_size=obj.get('uploaded_size', 0),
            is_uploading_active=obj.get('is_uploading_active', False),
            is_uploading_completed=obj.get('is_uploading_completed', False),
            is_downloading_active=obj.get('is_downloading_active', False),
            is_downloading_completed=obj.get('is_downloading_completed', False)
        )

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps(self.to_dict()).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'FileState':
        """Deserialize from JSON bytes."""
        return cls.from_dict(json.loads(data))


@dataclass
class MessageInfo:
    """A channel message carrying one document."""
    channel_id: str
    message_id: int
    caption: str
    date: float
    file: FileState
    file_name: str = ""
    mime_type: str = "application/octet-stream"

    def to_dict(self) -> dict:
        return {
            'channel_id': self.channel_id,
            'message_id': self.message_id,
            'caption': self.caption,
            'date': self.date,
            'file': self.file.to_dict(),
            'file_name': self.file_name,
            'mime_type': self.mime_type
        }

    @classmethod
    def from_dict(cls, obj: dict) -> 'MessageInfo':
        return cls(
            channel_id=str(obj['channel_id']),
            message_id=obj['message_id'],
            caption=obj.get('caption') or "",
            date=obj.get('date', 0.0),
            file=FileState.from_dict(obj['file']),
            file_name=obj.get('file_name', ""),
            mime_type=obj.get('mime_type', "application/octet-stream")
        )

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps(self.to_dict()).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'MessageInfo':
        """Deserialize from JSON bytes."""
        return cls.from_dict(json.loads(data))


@dataclass
class DocumentMetadata:
    """Leading message of a SendDocument stream."""
    channel_id: str
    caption: str
    file_name: str
    total_size: int


@dataclass
class SendDocumentRequest:
    """Request message for SendDocument RPC (client streaming)."""
    metadata: Optional[DocumentMetadata] = None
    data: Optional[bytes] = None

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        obj = {}
        if self.metadata:
            obj['metadata'] = self.metadata.__dict__
        if self.data is not None:
            obj['data'] = base64.b64encode(self.data).decode('ascii')
        return json.dumps(obj).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'SendDocumentRequest':
        """Deserialize from JSON bytes."""
        obj = json.loads(data)
        metadata = DocumentMetadata(**obj['metadata']) if 'metadata' in obj else None
        piece = base64.b64decode(obj['data']) if 'data' in obj else None
        return cls(metadata=metadata, data=piece)


@dataclass
class MessageResponse:
    """Response for SendDocument and GetMessage RPCs."""
    success: bool
    message: Optional[MessageInfo] = None
    error_code: int = 0
    error_message: Optional[str] = None

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps({
            'success': self.success,
            'message': self.message.to_dict() if self.message else None,
            'error_code': self.error_code,
            'error_message': self.error_message
        }).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'MessageResponse':
        """Deserialize from JSON bytes."""
        obj = json.loads(data)
        message = MessageInfo.from_dict(obj['message']) if obj.get('message') else None
        return cls(
            success=obj['success'],
            message=message,
            error_code=obj.get('error_code', 0),
            error_message=obj.get('error_message')
        )


@dataclass
class GetMessageRequest:
    """Request message for GetMessage RPC."""
    channel_id: str
    message_id: int

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps({'channel_id': self.channel_id, 'message_id': self.message_id}).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'GetMessageRequest':
        """Deserialize from JSON bytes."""
        obj = json.loads(data)
        return cls(channel_id=str(obj['channel_id']), message_id=obj['message_id'])


@dataclass
class DownloadFileRequest:
    """Request message for DownloadFile RPC."""
    file_id: int

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps({'file_id': self.file_id}).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'DownloadFileRequest':
        """Deserialize from JSON bytes."""
        return cls(file_id=json.loads(data)['file_id'])


@dataclass
class DownloadFileResponse:
    """Response message for DownloadFile RPC (server streaming).

    The first message carries the file state, later ones carry data.
    """
    file: Optional[FileState] = None
    data: Optional[bytes] = None

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        obj = {}
        if self.file:
            obj['file'] = self.file.to_dict()
        if self.data is not None:
            obj['data'] = base64.b64encode(self.data).decode('ascii')
        return json.dumps(obj).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'DownloadFileResponse':
        """Deserialize from JSON bytes."""
        obj = json.loads(data)
        file = FileState.from_dict(obj['file']) if 'file' in obj else None
        piece = base64.b64decode(obj['data']) if 'data' in obj else None
        return cls(file=file, data=piece)


@dataclass
class SearchMessagesRequest:
    """Request message for SearchMessages RPC."""
    channel_id: str
    query: str
    limit: int

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps(self.__dict__).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'SearchMessagesRequest':
        """Deserialize from JSON bytes."""
        return cls(**json.loads(data))


@dataclass
class SearchMessagesResponse:
    """Response message for SearchMessages RPC."""
    messages: List[MessageInfo] = field(default_factory=list)
    error_code: int = 0
    error_message: Optional[str] = None

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps({
            'messages': [m.to_dict() for m in self.messages],
            'error_code': self.error_code,
            'error_message': self.error_message
        }).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'SearchMessagesResponse':
        """Deserialize from JSON bytes."""
        obj = json.loads(data)
        return cls(
            messages=[MessageInfo.from_dict(m) for m in obj.get('messages', [])],
            error_code=obj.get('error_code', 0),
            error_message=obj.get('error_message')
        )


@dataclass
class AuthorizationStateRequest:
    """Request message for GetAuthorizationState RPC."""
    pass

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps({}).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'AuthorizationStateRequest':
        """Deserialize from JSON bytes."""
        return cls()


@dataclass
class AuthorizationStateResponse:
    """Response message for GetAuthorizationState RPC."""
    authenticated: bool
    state: str = ""

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps({'authenticated': self.authenticated, 'state': self.state}).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'AuthorizationStateResponse':
        """Deserialize from JSON bytes."""
        obj = json.loads(data)
        return cls(authenticated=obj['authenticated'], state=obj.get('state', ""))


@dataclass
class UpdateEvent:
    """Message of the SubscribeUpdates stream.

    ``kind`` is ``file`` for file state changes and ``authorization`` when
    the relay session's authorization changes.
    """
    kind: str
    file: Optional[FileState] = None
    authenticated: Optional[bool] = None

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps({
            'kind': self.kind,
            'file': self.file.to_dict() if self.file else None,
            'authenticated': self.authenticated
        }).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'UpdateEvent':
        """Deserialize from JSON bytes."""
        obj = json.loads(data)
        file = FileState.from_dict(obj['file']) if obj.get('file') else None
        return cls(kind=obj['kind'], file=file, authenticated=obj.get('authenticated'))
