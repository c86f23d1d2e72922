from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.templating import Jinja2Templates

from queuedesk.dependencies import get_store, get_templates
from queuedesk.services.kv_store import KeyValueStore
from queuedesk.services.queue_service import get_state, list_tickets, waiting_count

router = APIRouter(tags=['pages'])


@router.get('/')
def home(request: Request, templates: Jinja2Templates = Depends(get_templates)):
    cards = [
        {'href': '/tickets', 'label': 'Tickets', 'description': 'Issued queue numbers and their status'},
        {'href': '/display', 'label': 'Customer Display', 'description': 'Number currently being served'},
        {'href': '/rfq/system', 'label': 'System RFQs', 'description': 'System RFQ identifiers'},
        {'href': '/rfq/mb', 'label': 'MB RFQs', 'description': 'MB RFQ identifiers'},
    ]
    return templates.TemplateResponse(request, 'home.html', {'cards': cards})


@router.get('/display')
def display(
    request: Request,
    templates: Jinja2Templates = Depends(get_templates),
    store: KeyValueStore = Depends(get_store),
):
    state = get_state(store)
    return templates.TemplateResponse(
        request,
        'display.html',
        {
            'state': state,
            'waiting_count': waiting_count(list_tickets(store)),
        },
    )
