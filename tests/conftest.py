"""Shared pytest fixtures for the deal workflow test suite.

Services run against real SQLite databases under ``tmp_path``, a local blob
directory, a fixed clock and an in-memory email sender.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest

from dealflow.audit.logger import AuditLogger
from dealflow.audit.store import close_audit_db, init_audit_db
from dealflow.contracts.delivery import DeliveryService
from dealflow.contracts.pipeline import ContractPipeline
from dealflow.contracts.renderer import ContractRenderer
from dealflow.contracts.storage import LocalBlobStorage
from dealflow.domain.models import CreatorRef, Deal, DeliveryDetails, Viewer
from dealflow.domain.types import BrandResponseStatus, CollabType, ViewerRole
from dealflow.negotiation.engine import NegotiationEngine
from dealflow.notifications.notifier import Notifier
from dealflow.notifications.sender import EmailMessage
from dealflow.otp.verifier import OtpVerifier
from dealflow.signing.workflow import SigningWorkflow
from dealflow.store.records import save_new_deal
from dealflow.store.sqlite import SQLiteRecordStore, init_record_db
from dealflow.tokens.service import TokenService

APP_URL = "https://app.test"
FIXED_CODE = "123456"


class FixedClock:
    """A controllable stand-in for ``utc_now``."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingSender:
    """Email sender that keeps messages in memory and can be told to fail."""

    def __init__(self) -> None:
        self.sent: list[EmailMessage] = []
        self.fail = False

    def send(self, message: EmailMessage) -> str:
        if self.fail:
            raise RuntimeError("smtp down")
        self.sent.append(message)
        return f"msg-{len(self.sent)}"

    def to(self, address: str) -> list[EmailMessage]:
        return [m for m in self.sent if m.to == address]


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2026, 3, 2, 9, 30, tzinfo=UTC))


@pytest.fixture
def store(tmp_path: Path) -> SQLiteRecordStore:
    conn = init_record_db(tmp_path / "records.db")
    yield SQLiteRecordStore(conn)
    conn.close()


@pytest.fixture
def audit_conn(tmp_path: Path):
    conn = init_audit_db(tmp_path / "audit.db")
    yield conn
    close_audit_db(conn)


@pytest.fixture
def audit_logger(audit_conn) -> AuditLogger:
    return AuditLogger(audit_conn)


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def notifier(sender: RecordingSender, audit_logger: AuditLogger) -> Notifier:
    return Notifier(sender, audit_logger=audit_logger, ops_email="ops@dealflow.test")


@pytest.fixture
def blob_storage(tmp_path: Path) -> LocalBlobStorage:
    return LocalBlobStorage(tmp_path / "blobs", "https://files.test")


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture
def tokens(store: SQLiteRecordStore, clock: FixedClock) -> TokenService:
    return TokenService(store, clock=clock)


@pytest.fixture
def otp(store: SQLiteRecordStore, tokens: TokenService, clock: FixedClock) -> OtpVerifier:
    return OtpVerifier(store, tokens, clock=clock, code_factory=lambda: FIXED_CODE)


@pytest.fixture
def pipeline(
    store: SQLiteRecordStore,
    tokens: TokenService,
    blob_storage: LocalBlobStorage,
    audit_logger: AuditLogger,
    notifier: Notifier,
    clock: FixedClock,
) -> ContractPipeline:
    return ContractPipeline(
        store,
        tokens,
        ContractRenderer(),
        blob_storage,
        audit_logger,
        notifier,
        public_app_url=APP_URL,
        clock=clock,
    )


@pytest.fixture
def delivery(
    store: SQLiteRecordStore,
    pipeline: ContractPipeline,
    audit_logger: AuditLogger,
    clock: FixedClock,
) -> DeliveryService:
    return DeliveryService(store, pipeline, audit_logger, clock=clock)


@pytest.fixture
def engine(
    store: SQLiteRecordStore,
    tokens: TokenService,
    pipeline: ContractPipeline,
    audit_logger: AuditLogger,
    notifier: Notifier,
    clock: FixedClock,
) -> NegotiationEngine:
    return NegotiationEngine(
        store, tokens, pipeline, audit_logger, notifier, public_app_url=APP_URL, clock=clock
    )


@pytest.fixture
def signing(
    store: SQLiteRecordStore,
    tokens: TokenService,
    otp: OtpVerifier,
    blob_storage: LocalBlobStorage,
    audit_logger: AuditLogger,
    notifier: Notifier,
    clock: FixedClock,
) -> SigningWorkflow:
    return SigningWorkflow(
        store,
        tokens,
        otp,
        blob_storage,
        audit_logger,
        notifier,
        public_app_url=APP_URL,
        clock=clock,
    )


@pytest.fixture
def services(
    tmp_path: Path,
    store: SQLiteRecordStore,
    audit_conn,
    audit_logger: AuditLogger,
    sender: RecordingSender,
    blob_storage: LocalBlobStorage,
    tokens: TokenService,
    otp: OtpVerifier,
    pipeline: ContractPipeline,
    delivery: DeliveryService,
    engine: NegotiationEngine,
    signing: SigningWorkflow,
) -> dict[str, Any]:
    """A services dict shaped like ``initialize_services`` output."""
    return {
        "record_conn": store._conn,
        "store": store,
        "audit_conn": audit_conn,
        "audit_logger": audit_logger,
        "email_sender": sender,
        "blob_storage": blob_storage,
        "tokens": tokens,
        "otp": otp,
        "contract_pipeline": pipeline,
        "delivery": delivery,
        "negotiation": engine,
        "signing": signing,
    }


# ---------------------------------------------------------------------------
# Deals and viewers
# ---------------------------------------------------------------------------


@pytest.fixture
def creator() -> CreatorRef:
    return CreatorRef(
        id="creator-1",
        name="Asha Rao",
        email="asha@creators.test",
        benchmark_rate=Decimal("5000"),
    )


@pytest.fixture
def creator_viewer(creator: CreatorRef) -> Viewer:
    return Viewer(user_id=creator.id)


@pytest.fixture
def admin_viewer() -> Viewer:
    return Viewer(user_id="admin-1", role=ViewerRole.ADMIN)


@pytest.fixture
def stranger_viewer() -> Viewer:
    return Viewer(user_id="creator-999")


@pytest.fixture
def make_deal(
    store: SQLiteRecordStore, creator: CreatorRef, clock: FixedClock
) -> Callable[..., Deal]:
    """Persist a deal, overriding any field by keyword."""
    counter = {"n": 0}

    def _make(**overrides: Any) -> Deal:
        counter["n"] += 1
        fields: dict[str, Any] = {
            "id": f"deal-{counter['n']}",
            "creator": creator,
            "brand_name": "Glow Labs",
            "brand_email": "partners@glowlabs.test",
            "brand_contact_name": "Meera",
            "collab_type": CollabType.PAID,
            "budget": Decimal("4000"),
            "deliverables": ["1 Instagram Reel", "2 Stories"],
            "deadline": date(2026, 3, 20),
            "created_at": clock(),
            "updated_at": clock(),
        }
        fields.update(overrides)
        return save_new_deal(store, Deal(**fields))

    return _make


@pytest.fixture
def barter_details() -> DeliveryDetails:
    return DeliveryDetails(
        name="Asha Rao", phone="+91 98765 43210", address="12 MG Road, Bengaluru"
    )


@pytest.fixture
def accepted_paid_deal(make_deal: Callable[..., Deal]) -> Deal:
    return make_deal(brand_response_status=BrandResponseStatus.ACCEPTED_VERIFIED)
