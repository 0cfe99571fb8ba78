"""Sales lead validation and scoring for the public lead form."""
import re

LEAD_STATUSES = ('new', 'contacted', 'qualified', 'demo_scheduled', 'converted', 'lost')
LEAD_SOURCES = ('chat_widget', 'landing_page', 'referral', 'organic', 'paid_ads',
                'social_media', 'email_campaign', 'other')

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
PHONE_RE = re.compile(r'^[\d\s\-+()]*$')

_MAX_LENGTHS = {
    'name': 100,
    'email': 255,
    'phone': 20,
    'company_name': 200,
    'daycare_size': 50,
    'location': 200,
    'utm_source': 100,
    'utm_medium': 100,
    'utm_campaign': 100,
    'notes': 5000,
}


class LeadValidationError(ValueError):
    def __init__(self, errors):
        super().__init__('; '.join(errors))
        self.errors = errors


def _clean_list(value, max_items, max_length, field, errors):
    if value is None:
        return []
    if not isinstance(value, list):
        errors.append(f"{field} must be a list")
        return []
    if len(value) > max_items:
        errors.append(f"{field} accepts at most {max_items} entries")
    items = [str(v).strip() for v in value[:max_items] if str(v).strip()]
    if any(len(v) > max_length for v in items):
        errors.append(f"{field} entries must be at most {max_length} characters")
    return items


def validate_lead(payload):
    """Return a cleaned lead dict or raise LeadValidationError."""
    if not isinstance(payload, dict):
        raise LeadValidationError(['Request body must be a JSON object'])

    errors = []
    cleaned = {}
    for field, max_length in _MAX_LENGTHS.items():
        value = payload.get(field)
        if value is None or str(value).strip() == '':
            cleaned[field] = None
            continue
        value = str(value).strip()
        if len(value) > max_length:
            errors.append(f"{field} must be at most {max_length} characters")
        cleaned[field] = value

    if cleaned['email'] and not EMAIL_RE.match(cleaned['email']):
        errors.append('Invalid email format')
    if cleaned['phone'] and not PHONE_RE.match(cleaned['phone']):
        errors.append('Invalid phone format')

    source = payload.get('source') or 'chat_widget'
    if source not in LEAD_SOURCES:
        errors.append(f"Unknown source: {source}")
    cleaned['source'] = source

    cleaned['current_pain_points'] = _clean_list(payload.get('current_pain_points'), 10, 500,
                                                 'current_pain_points', errors)
    cleaned['interested_features'] = _clean_list(payload.get('interested_features'), 20, 100,
                                                 'interested_features', errors)

    history = payload.get('conversation_history') or []
    if not isinstance(history, list) or len(history) > 100:
        errors.append('conversation_history must be a list of at most 100 messages')
        history = []
    cleaned['total_messages'] = len(history)

    if not (cleaned['name'] or cleaned['email'] or cleaned['phone']):
        errors.append('At least one contact field is required (name, email, or phone)')

    if errors:
        raise LeadValidationError(errors)
    return cleaned


def score_lead(lead):
    """Score a cleaned lead and derive its priority."""
    score = 0
    if lead.get('email'):
        score += 20
    if lead.get('phone'):
        score += 15
    if lead.get('company_name'):
        score += 10
    if lead.get('daycare_size'):
        score += 10
    if lead.get('current_pain_points'):
        score += 15
    if lead.get('interested_features'):
        score += 10
    if (lead.get('total_messages') or 0) > 3:
        score += 20

    if score >= 70:
        priority = 'high'
    elif score >= 50:
        priority = 'medium'
    else:
        priority = 'low'
    return score, priority
