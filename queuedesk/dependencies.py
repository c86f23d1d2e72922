from fastapi import Request
from fastapi.templating import Jinja2Templates

from queuedesk.services.kv_store import KeyValueStore
from queuedesk.services.provider_factory import get_kv_store


def get_store() -> KeyValueStore:
    return get_kv_store()


def get_templates(request: Request) -> Jinja2Templates:
    return request.app.state.templates


async def read_json_body(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}
