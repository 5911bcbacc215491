import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backoffice.core.config import settings
from backoffice.api.routes.auth import router as auth_router
from backoffice.api.routes.users import router as users_router
from backoffice.api.routes.pending_users import router as pending_users_router
from backoffice.api.routes.password_reset import router as password_reset_router, pages as password_reset_pages
from backoffice.api.routes.ledger import router as ledger_router
from backoffice.api.routes.audit import router as audit_router
from backoffice.services.mailer import build_mailer

logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s %(message)s")
log = logging.getLogger(__name__)

app = FastAPI(title="VP Engenharia back-office")
app.state.mailer = build_mailer(settings)

origins = [o.strip() for o in (settings.cors_origins or "").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/health")
@app.get("/api/health")
def health():
    return {"status": "ok"}

app.include_router(auth_router, prefix=settings.api_prefix)
app.include_router(users_router, prefix=settings.api_prefix)
app.include_router(pending_users_router, prefix=settings.api_prefix)
app.include_router(password_reset_router, prefix=settings.api_prefix)
app.include_router(ledger_router, prefix=settings.api_prefix)
app.include_router(audit_router, prefix=settings.api_prefix)
app.include_router(password_reset_pages)

@app.on_event("startup")
def _start_mailer():
    app.state.mailer.start()
    log.info("backoffice started api_prefix=%s", settings.api_prefix)

@app.on_event("shutdown")
def _close_mailer():
    app.state.mailer.close()
