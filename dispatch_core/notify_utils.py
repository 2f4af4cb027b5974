import json
from typing import Any, Dict

import requests

from dispatch_core.models import ChangeEvent, DispatchTarget

GITHUB_ACCEPT = 'application/vnd.github.v3+json'


def build_headers(target: DispatchTarget, user_agent: str) -> Dict[str, str]:
    """Headers for one request. A fresh dict every call; never shared."""
    return {
        'User-Agent': user_agent,
        'Accept': GITHUB_ACCEPT,
        'Authorization': f'token {target.token}',
        'Content-Type': 'application/json',
    }


def create_session() -> requests.Session:
    return requests.Session()


def post_dispatch(
    session: requests.Session,
    url: str,
    headers: Dict[str, str],
    payload: Dict[str, Any],
    timeout: float,
) -> requests.Response:
    """POST a repository_dispatch body; raises on network errors and non-2xx."""
    response = session.post(url, headers=headers, data=json.dumps(payload), timeout=timeout)
    response.raise_for_status()
    if not 200 <= response.status_code < 300:
        raise requests.HTTPError(
            f"{response.status_code} Unexpected status for url: {url}",
            response=response,
        )
    return response


def send_event(session, target: DispatchTarget, event: ChangeEvent, user_agent: str, timeout: float):
    return post_dispatch(
        session,
        target.url,
        build_headers(target, user_agent),
        event.to_payload(),
        timeout,
    )
