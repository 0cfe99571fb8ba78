"""Organization (tenant) scoping for queries and records."""
from flask import abort, session
from sqlalchemy import false


def get_current_org_id():
    """Organization of the logged-in staff user or guardian, or None."""
    return session.get('organization_id')


def get_org_filtered_query(model, organization_id=None):
    """Query on `model` restricted to the current organization."""
    organization_id = organization_id or get_current_org_id()
    if organization_id is None:
        # No tenant in session: match nothing rather than everything
        return model.query.filter(false())
    return model.query.filter(model.organization_id == organization_id)


def get_org_record_or_404(model, record_id):
    record = get_org_filtered_query(model).filter(model.id == record_id).first()
    if record is None:
        abort(404)
    return record
