"""
Override audit trail: append-only entries chained by SHA-256.
"""
from sqlmodel import Session, select

from conftest import ELM_CENTER, offset_north
from db.session import engine
from models.override_audit import OverrideAuditEntry
from services.override_audit_log import OverrideAuditLog
from services.visit_service import VisitLifecycleService
from utils.hash_chain import GENESIS, compute_entry_hash, validate_chain


def _overridden_visit(session):
    service = VisitLifecycleService(session)
    visit_id = service.check_in(
        "worker-a", "MQR-ELM", offset_north(ELM_CENTER, 100), override_reason="parked across the street"
    ).visit.id
    service.check_out(visit_id, offset_north(ELM_CENTER, 70), override_reason="loading van")
    return visit_id


def test_entry_hash_matches_recomputation(session, properties):
    visit_id = _overridden_visit(session)
    first = OverrideAuditLog(session).list_for_visit(visit_id)[0]

    assert first.entry_hash == compute_entry_hash(
        None, visit_id, "CHECK_IN", first.verdict, first.reason, first.recorded_at
    )
    assert len(first.entry_hash) == 64


def test_genesis_marker_is_explicit(session, properties):
    visit_id = _overridden_visit(session)
    first = OverrideAuditLog(session).list_for_visit(visit_id)[0]

    assert first.entry_hash == compute_entry_hash(
        GENESIS, visit_id, "CHECK_IN", first.verdict, first.reason, first.recorded_at
    )


def test_chains_are_per_visit(session, properties):
    first_visit = _overridden_visit(session)
    second_visit = _overridden_visit(session)

    log = OverrideAuditLog(session)
    assert log.list_for_visit(second_visit)[0].prev_hash is None
    assert log.verify_chain(first_visit)["is_valid"]
    assert log.verify_chain(second_visit)["is_valid"]


def test_tampered_reason_is_detected(session, properties):
    visit_id = _overridden_visit(session)

    # Out-of-band edit, bypassing the log
    with Session(engine) as s:
        entry = s.exec(
            select(OverrideAuditEntry).where(OverrideAuditEntry.visit_id == visit_id)
        ).first()
        entry.reason = "worker was on site"
        s.add(entry)
        s.commit()

    session.expire_all()
    chain = OverrideAuditLog(session).verify_chain(visit_id)
    assert chain["is_valid"] is False
    assert any("Hash mismatch" in error for error in chain["errors"])


def test_empty_chain_is_valid():
    assert validate_chain([]) == {"is_valid": True, "errors": []}


def test_no_entries_for_clean_visit(session, properties):
    service = VisitLifecycleService(session)
    visit_id = service.check_in("worker-a", "MQR-ELM", ELM_CENTER).visit.id
    service.check_out(visit_id, ELM_CENTER)

    assert OverrideAuditLog(session).list_for_visit(visit_id) == []
