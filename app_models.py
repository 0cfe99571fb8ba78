from datetime import datetime, timedelta

import bcrypt
from flask_sqlalchemy import SQLAlchemy

import plans

db = SQLAlchemy()


# Database Models
class Organization(db.Model):
    __tablename__ = 'organizations'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, default='ChildCare Center')
    address = db.Column(db.String(500), nullable=True)
    city = db.Column(db.String(100), nullable=True)
    state = db.Column(db.String(50), nullable=True)
    zip = db.Column(db.String(20), nullable=True)
    phone = db.Column(db.String(50), nullable=True)
    email = db.Column(db.String(120), nullable=True)
    tax_id = db.Column(db.String(50), nullable=True)
    license_number = db.Column(db.String(50), nullable=True)
    cacfp_tier = db.Column(db.String(10), default='tier1')  # tier1 or tier2
    is_active = db.Column(db.Boolean, default=True)
    is_blocked = db.Column(db.Boolean, default=False)
    plan = db.Column(db.String(20), default='trial')  # trial, starter, professional, enterprise
    subscription_status = db.Column(db.String(20), default='trial')  # trial, active, past_due, cancelled
    trial_start_date = db.Column(db.DateTime, default=datetime.utcnow)
    subscription_end_date = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def days_remaining(self, now=None):
        """Calculate days remaining in trial or paid subscription"""
        now = now or datetime.utcnow()
        if self.subscription_status == 'trial':
            return plans.trial_days_remaining(self.trial_start_date or now, now)
        if self.subscription_end_date:
            return max(0, (self.subscription_end_date - now).days)
        return 0

    def is_subscription_expired(self, now=None):
        """Trials expire after the trial days; paid plans once the end date has passed."""
        now = now or datetime.utcnow()
        if self.subscription_status == 'trial':
            return self.days_remaining(now) <= 0
        if not self.subscription_end_date:
            return self.subscription_status != 'active'
        return self.subscription_end_date <= now

    def has_feature(self, feature):
        return plans.has_feature(self.plan, feature)


class User(db.Model):
    """Staff profile; role 'superadmin' is the platform operator with no organization."""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=True)
    username = db.Column(db.String(80), nullable=False, unique=True)
    email = db.Column(db.String(120), nullable=True)
    password_hash = db.Column(db.String(128), nullable=False)
    first_name = db.Column(db.String(100), nullable=False, default='')
    last_name = db.Column(db.String(100), nullable=False, default='')
    role = db.Column(db.String(20), nullable=False, default='teacher')  # superadmin, owner, director, lead_teacher, teacher, assistant
    is_director = db.Column(db.Boolean, default=False)
    status = db.Column(db.String(20), default='active')
    hire_date = db.Column(db.Date, nullable=True)
    # DCF training / certification flags
    has_45_hours_training = db.Column(db.Boolean, default=False)
    training_45_hours_completion_date = db.Column(db.Date, nullable=True)
    has_40_hours_initial = db.Column(db.Boolean, default=False)
    initial_training_completion_date = db.Column(db.Date, nullable=True)
    has_cda_credential = db.Column(db.Boolean, default=False)
    cda_expiration_date = db.Column(db.Date, nullable=True)
    background_check_clear = db.Column(db.Boolean, default=False)
    background_check_date = db.Column(db.Date, nullable=True)
    annual_training_hours_completed = db.Column(db.Float, default=0.0)
    annual_training_fiscal_year = db.Column(db.String(9), nullable=True)
    first_login = db.Column(db.Boolean, default=True)
    password_change_required = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    organization = db.relationship('Organization', backref='users')

    def set_password(self, password):
        self.password_hash = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')

    def check_password(self, password):
        if not self.password_hash:
            return False
        return bcrypt.checkpw(password.encode('utf-8'), self.password_hash.encode('utf-8'))

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip() or self.username


class Family(db.Model):
    __tablename__ = 'families'

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False)
    family_name = db.Column(db.String(200), nullable=False)
    primary_contact_name = db.Column(db.String(200), nullable=False)
    primary_contact_email = db.Column(db.String(120), nullable=True)
    primary_contact_phone = db.Column(db.String(50), nullable=True)
    address = db.Column(db.String(500), nullable=True)
    status = db.Column(db.String(20), default='active')
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    organization = db.relationship('Organization', backref='families')


class Guardian(db.Model):
    """Parent portal login bound to one family."""
    __tablename__ = 'guardians'

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False)
    family_id = db.Column(db.Integer, db.ForeignKey('families.id'), nullable=False)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), nullable=False, unique=True)
    phone = db.Column(db.String(50), nullable=True)
    relationship_type = db.Column(db.String(50), default='parent')
    password_hash = db.Column(db.String(128), nullable=True)
    is_active = db.Column(db.Boolean, default=True)
    last_login_at = db.Column(db.DateTime, nullable=True)
    password_set_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    family = db.relationship('Family', backref='guardians')

    def set_password(self, password):
        self.password_hash = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')
        self.password_set_at = datetime.utcnow()

    def check_password(self, password):
        if not self.password_hash:
            return False
        return bcrypt.checkpw(password.encode('utf-8'), self.password_hash.encode('utf-8'))


class Classroom(db.Model):
    __tablename__ = 'classrooms'

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    age_group = db.Column(db.String(30), nullable=True)
    capacity = db.Column(db.Integer, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)


class Child(db.Model):
    __tablename__ = 'children'

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False)
    family_id = db.Column(db.Integer, db.ForeignKey('families.id'), nullable=False)
    classroom_id = db.Column(db.Integer, db.ForeignKey('classrooms.id'), nullable=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    date_of_birth = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(20), default='active')  # active, inactive, withdrawn
    allergies = db.Column(db.JSON, default=list)
    dietary_restrictions = db.Column(db.String(500), nullable=True)
    program_type = db.Column(db.String(30), default='private')  # private, vpk, vpk_wraparound, school_readiness, sr_copay
    vpk_schedule_type = db.Column(db.String(20), nullable=True)  # school_year, summer
    weekly_rate = db.Column(db.Float, nullable=True)
    hourly_rate = db.Column(db.Float, nullable=True)
    days_per_week = db.Column(db.Integer, default=5)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    family = db.relationship('Family', backref='children')
    classroom = db.relationship('Classroom', backref='children')

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"


class Attendance(db.Model):
    __tablename__ = 'attendance'

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False)
    child_id = db.Column(db.Integer, db.ForeignKey('children.id'), nullable=False)
    date = db.Column(db.Date, nullable=False)
    check_in_time = db.Column(db.DateTime, nullable=True)
    check_out_time = db.Column(db.DateTime, nullable=True)
    status = db.Column(db.String(20), default='present')  # present, absent
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    child = db.relationship('Child', backref='attendance_records')


class Invoice(db.Model):
    __tablename__ = 'invoices'

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False)
    family_id = db.Column(db.Integer, db.ForeignKey('families.id'), nullable=False)
    invoice_number = db.Column(db.String(20), nullable=False)
    subtotal = db.Column(db.Float, default=0.0)
    discount = db.Column(db.Float, default=0.0)
    total = db.Column(db.Float, default=0.0)
    amount_paid = db.Column(db.Float, default=0.0)
    status = db.Column(db.String(20), default='draft')  # draft, sent, partial, paid, overdue, cancelled
    due_date = db.Column(db.Date, nullable=True)
    period_start = db.Column(db.Date, nullable=True)
    period_end = db.Column(db.Date, nullable=True)
    billing_period = db.Column(db.String(20), nullable=True)  # weekly, biweekly, monthly
    notes = db.Column(db.Text, nullable=True)
    line_items = db.Column(db.JSON, default=list)
    paid_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    family = db.relationship('Family', backref='invoices')
    payments = db.relationship('Payment', backref='invoice', order_by='Payment.paid_at.desc()',
                               cascade='all, delete-orphan')

    __table_args__ = (db.UniqueConstraint('organization_id', 'invoice_number', name='unique_org_invoice_number'),)

    @property
    def balance(self):
        return round((self.total or 0) - (self.amount_paid or 0), 2)

    @staticmethod
    def last_sequence(organization_id, year):
        """Highest invoice sequence used by an organization in a year (0 if none).

        Compared numerically so INV-2025-10000 follows INV-2025-9999.
        """
        prefix = f"INV-{year}-"
        numbers = db.session.query(Invoice.invoice_number).filter(
            Invoice.organization_id == organization_id,
            Invoice.invoice_number.like(f"{prefix}%")
        ).all()
        sequences = [int(number[len(prefix):]) for (number,) in numbers if number[len(prefix):].isdigit()]
        return max(sequences, default=0)


class Payment(db.Model):
    __tablename__ = 'payments'

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False)
    invoice_id = db.Column(db.Integer, db.ForeignKey('invoices.id'), nullable=False)
    amount = db.Column(db.Float, nullable=False)
    payment_method = db.Column(db.String(30), default='cash')  # cash, check, card, ach, other
    reference = db.Column(db.String(100), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    recorded_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    paid_at = db.Column(db.DateTime, default=datetime.utcnow)


class MealAttendance(db.Model):
    __tablename__ = 'meal_attendance'

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False)
    child_id = db.Column(db.Integer, db.ForeignKey('children.id'), nullable=False)
    meal_date = db.Column(db.Date, nullable=False)
    meal_type = db.Column(db.String(20), nullable=False)  # breakfast, am_snack, lunch, pm_snack, supper
    served = db.Column(db.Boolean, default=True)
    served_at = db.Column(db.DateTime, nullable=True)
    served_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    portion_eaten = db.Column(db.String(10), nullable=True)  # none, partial, full
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    child = db.relationship('Child', backref='meal_records')

    __table_args__ = (db.UniqueConstraint('organization_id', 'child_id', 'meal_date', 'meal_type',
                                          name='unique_child_meal'),)


class FireDrill(db.Model):
    __tablename__ = 'fire_drills'

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False)
    drill_date = db.Column(db.Date, nullable=False)
    drill_time = db.Column(db.Time, nullable=True)
    drill_type = db.Column(db.String(20), nullable=False, default='fire')  # fire, tornado, lockdown, evacuation
    duration_seconds = db.Column(db.Integer, nullable=True)
    weather_conditions = db.Column(db.String(100), nullable=True)
    total_children = db.Column(db.Integer, default=0)
    total_staff = db.Column(db.Integer, default=0)
    evacuation_successful = db.Column(db.Boolean, default=True)
    all_exits_used = db.Column(db.Boolean, default=False)
    assembly_point_reached = db.Column(db.Boolean, default=False)
    headcount_verified = db.Column(db.Boolean, default=False)
    issues_noted = db.Column(db.Text, nullable=True)
    corrective_actions = db.Column(db.Text, nullable=True)
    conducted_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    conductor = db.relationship('User', foreign_keys=[conducted_by])


class StaffCertification(db.Model):
    __tablename__ = 'staff_certifications'

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    certification_type = db.Column(db.String(40), nullable=False)
    certification_name = db.Column(db.String(200), nullable=True)
    issued_date = db.Column(db.Date, nullable=True)
    expiration_date = db.Column(db.Date, nullable=True)
    hours_completed = db.Column(db.Float, nullable=True)
    status = db.Column(db.String(20), default='active')
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    staff = db.relationship('User', backref='certifications')


class SREnrollment(db.Model):
    """School Readiness subsidy enrollment."""
    __tablename__ = 'sr_enrollments'

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False)
    child_id = db.Column(db.Integer, db.ForeignKey('children.id'), nullable=False)
    case_number = db.Column(db.String(50), nullable=True)
    school_year = db.Column(db.String(9), nullable=False)
    rate_type = db.Column(db.String(20), default='after_school')  # after_school, full_time, before_after
    authorized_hours_weekly = db.Column(db.Float, default=0.0)
    copay_amount = db.Column(db.Float, default=0.0)
    copay_frequency = db.Column(db.String(10), default='weekly')  # weekly, monthly
    status = db.Column(db.String(20), default='active')
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    child = db.relationship('Child', backref='sr_enrollments')


class SchoolCalendar(db.Model):
    __tablename__ = 'school_calendars'

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False)
    school_year = db.Column(db.String(9), nullable=False)
    christmas_break_start = db.Column(db.Date, nullable=True)
    christmas_break_end = db.Column(db.Date, nullable=True)
    spring_break_start = db.Column(db.Date, nullable=True)
    spring_break_end = db.Column(db.Date, nullable=True)
    summer_start = db.Column(db.Date, nullable=True)
    summer_end = db.Column(db.Date, nullable=True)
    is_active = db.Column(db.Boolean, default=True)


class SalesLead(db.Model):
    """Prospective daycare owners captured by the public lead form."""
    __tablename__ = 'sales_leads'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(20), nullable=True)
    company_name = db.Column(db.String(200), nullable=True)
    source = db.Column(db.String(30), default='chat_widget')
    daycare_size = db.Column(db.String(50), nullable=True)
    location = db.Column(db.String(200), nullable=True)
    current_pain_points = db.Column(db.JSON, default=list)
    interested_features = db.Column(db.JSON, default=list)
    total_messages = db.Column(db.Integer, default=0)
    score = db.Column(db.Integer, default=0)
    priority = db.Column(db.String(10), default='low')
    status = db.Column(db.String(20), default='new')
    utm_source = db.Column(db.String(100), nullable=True)
    utm_medium = db.Column(db.String(100), nullable=True)
    utm_campaign = db.Column(db.String(100), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'company_name': self.company_name,
            'source': self.source,
            'score': self.score,
            'priority': self.priority,
            'status': self.status,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class Subscription(db.Model):
    __tablename__ = 'subscriptions'

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False)
    plan = db.Column(db.String(20), nullable=False)  # trial, starter, professional, enterprise
    billing_cycle = db.Column(db.String(10), default='monthly')  # monthly, annual
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=True)
    amount_paid = db.Column(db.Float, default=0.0)
    payment_reference = db.Column(db.String(100), nullable=True)
    is_active = db.Column(db.Boolean, default=True)
    created_by = db.Column(db.String(80), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    organization = db.relationship('Organization', backref='subscriptions')

    def days_remaining(self, now=None):
        """Calculate days remaining in this subscription period"""
        now = now or datetime.utcnow()
        if self.end_date:
            return max(0, (self.end_date - now).days)
        return 0


def subscription_end(start, billing_cycle):
    """End of a paid period starting at `start`."""
    return start + timedelta(days=365 if billing_cycle == 'annual' else 30)
