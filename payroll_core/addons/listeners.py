import json
from datetime import datetime
from sqlalchemy import event
from flask_jwt_extended import get_jwt_identity
from .extensions import db
from ..models.payroll import PayrollEntry
from ..models.payroll_audit import PayrollAudit


def _serialize_model(instance):
    """Return a plain dict of a model's column->value pairs."""
    d = {}
    for c in instance.__table__.columns:
        val = getattr(instance, c.name)
        try:
            json.dumps(val)
            d[c.name] = val
        except TypeError:
            d[c.name] = str(val) if val is not None else None
    return d


def _current_identity():
    # Best-effort: no request or no token means no identity
    try:
        identity = get_jwt_identity()
    except Exception:
        identity = None
    return str(identity) if identity is not None else None


def log_audit(entity_type, entity_id, action, before, after, performed_by=None, comment=None):
    a = PayrollAudit(
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        performed_by=performed_by if performed_by is not None else _current_identity(),
        before_data=json.dumps(before) if before is not None else None,
        after_data=json.dumps(after) if after is not None else None,
        comment=comment
    )
    db.session.add(a)
    # committed together with the caller's transaction
    return a


def _write_audit(connection, target, action, before=None, after=None):
    # inside a flush: write through the flushing connection, not the session
    connection.execute(
        PayrollAudit.__table__.insert().values(
            entity_type='PayrollEntry',
            entity_id=str(target.id),
            action=action,
            performed_by=_current_identity(),
            timestamp=datetime.now(),
            before_data=json.dumps(before) if before is not None else None,
            after_data=json.dumps(after) if after is not None else None,
        )
    )


@event.listens_for(PayrollEntry, 'after_insert')
def after_insert_entry(mapper, connection, target):
    _write_audit(connection, target, 'created', after=_serialize_model(target))


@event.listens_for(PayrollEntry, 'after_update')
def after_update_entry(mapper, connection, target):
    _write_audit(connection, target, 'updated', after=_serialize_model(target))


@event.listens_for(PayrollEntry, 'after_delete')
def after_delete_entry(mapper, connection, target):
    _write_audit(connection, target, 'deleted', before=_serialize_model(target))
