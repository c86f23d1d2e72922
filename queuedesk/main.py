from pathlib import Path

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from fastapi.templating import Jinja2Templates

from queuedesk.errors import install_error_handlers
from queuedesk.logging_config import setup_logging
from queuedesk.routers import admin, auth, logs, pages, queue, rfq, users
from queuedesk.security.headers import install_security_headers

setup_logging()

app = FastAPI(title='Queue Desk')

TEMPLATE_DIR = Path(__file__).resolve().parent / 'templates'
app.state.templates = Jinja2Templates(directory=str(TEMPLATE_DIR))

install_security_headers(app)
install_error_handlers(app)

app.include_router(pages.router)
app.include_router(auth.router)
app.include_router(queue.router)
app.include_router(rfq.router)
app.include_router(users.router)
app.include_router(logs.router)
app.include_router(admin.router)


@app.get('/robots.txt', response_class=PlainTextResponse)
def robots_txt() -> str:
    return 'User-agent: *\nDisallow: /\n'
