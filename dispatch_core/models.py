from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict

CONTENT_PUBLISHED = 'content_published'
CONTENT_UNPUBLISHED = 'content_unpublished'

API_ROOT = 'https://api.github.com'


@dataclass(frozen=True)
class DispatchTarget:
    """Repository that receives repository_dispatch events."""
    owner: str = ''
    repo: str = ''
    token: str = field(default='', repr=False)

    def is_complete(self) -> bool:
        return all((v or '').strip() for v in (self.owner, self.repo, self.token))

    @property
    def url(self) -> str:
        return f"{API_ROOT}/repos/{self.owner}/{self.repo}/dispatches"


@dataclass(frozen=True)
class DispatchSettings:
    """Transport tuning for a dispatcher instance."""
    user_agent: str
    timeout: float = 10.0
    max_workers: int = 4


@dataclass(frozen=True)
class ChangeEvent:
    """One content change, built fresh per notified item."""
    event_type: str
    content_id: Any
    content_name: str
    content_type_alias: str
    update_date: Any

    @classmethod
    def from_content(cls, event_type: str, content) -> 'ChangeEvent':
        return cls(
            event_type=event_type,
            content_id=content.id,
            content_name=content.name,
            content_type_alias=content.content_type.alias,
            update_date=content.update_date,
        )

    def to_payload(self) -> Dict[str, Any]:
        update_date = self.update_date
        if isinstance(update_date, datetime):
            update_date = update_date.isoformat()
        elif update_date is not None:
            update_date = str(update_date)
        return {
            'event_type': self.event_type,
            'client_payload': {
                'id': self.content_id,
                'name': self.content_name,
                'contentType': self.content_type_alias,
                'updateDate': update_date,
            },
        }

    def log_extra(self) -> Dict[str, Any]:
        """Structured fields attached to every log line about this event."""
        return {
            'event_type': self.event_type,
            'content_id': self.content_id,
            'content_name': self.content_name,
        }
