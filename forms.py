from datetime import date

from flask_wtf import FlaskForm
from wtforms import (BooleanField, DateField, FloatField, IntegerField, PasswordField,
                     SelectField, SelectMultipleField, StringField, TextAreaField, TimeField)
from wtforms.validators import DataRequired, EqualTo, Length, NumberRange, Optional, Regexp, ValidationError

import compliance
import leads
import program_billing
import program_income
import tuition_billing
from cacfp import MEAL_LABELS, MEAL_TYPES
from plans import PLAN_NAMES

EMAIL_PATTERN = r'^[^@\s]+@[^@\s]+\.[^@\s]+$'


class LoginForm(FlaskForm):
    username = StringField('Username', validators=[DataRequired(), Length(max=80)])
    password = PasswordField('Password', validators=[DataRequired()])


class PasswordChangeForm(FlaskForm):
    new_password = PasswordField('New Password', validators=[DataRequired(), Length(min=8, max=128)])
    confirm_password = PasswordField('Confirm Password',
                                     validators=[DataRequired(), EqualTo('new_password', 'Passwords do not match')])


class MultiWeekInvoiceForm(FlaskForm):
    family_id = SelectField('Family', coerce=int, validators=[DataRequired()])
    child_ids = SelectMultipleField('Children', coerce=int, validators=[DataRequired()])
    period_start = DateField('Period Start', validators=[DataRequired()])
    period_end = DateField('Period End', validators=[DataRequired()])
    days_per_week_attended = IntegerField('Days Attended per Week', default=5,
                                          validators=[DataRequired(), NumberRange(min=1, max=7)])
    billing_period = SelectField('Billing Period', default='weekly', choices=[
        ('weekly', 'Weekly'), ('biweekly', 'Bi-weekly'), ('monthly', 'Monthly')])
    discount = FloatField('Discount ($)', default=0, validators=[Optional(), NumberRange(min=0)])
    discount_percent = FloatField('Discount (%)', default=0, validators=[Optional(), NumberRange(min=0, max=100)])
    registration_fee = FloatField('Registration Fee', default=0, validators=[Optional(), NumberRange(min=0)])
    notes = TextAreaField('Notes', validators=[Optional(), Length(max=2000)])

    def validate_period_end(self, field):
        if self.period_start.data and field.data and field.data < self.period_start.data:
            raise ValidationError('Period end must be on or after period start')


class PaymentForm(FlaskForm):
    amount = FloatField('Amount', validators=[DataRequired(), NumberRange(min=0.01)])
    payment_method = SelectField('Payment Method', default='cash',
                                 choices=[(m, m.upper() if m == 'ach' else m.title())
                                          for m in tuition_billing.PAYMENT_METHODS])
    reference = StringField('Reference', validators=[Optional(), Length(max=100)])
    notes = TextAreaField('Notes', validators=[Optional(), Length(max=1000)])


class LateFeeForm(FlaskForm):
    fee_amount = FloatField('Flat Fee ($)', default=25, validators=[Optional(), NumberRange(min=0)])
    fee_percent = FloatField('Percentage Fee (%)', validators=[Optional(), NumberRange(min=0, max=100)])


class MealAttendanceForm(FlaskForm):
    meal_date = DateField('Date', validators=[DataRequired()])
    meal_type = SelectField('Meal', choices=[(m, MEAL_LABELS[m]) for m in MEAL_TYPES])
    child_ids = SelectMultipleField('Children Served', coerce=int, validators=[DataRequired()])


class FireDrillForm(FlaskForm):
    drill_date = DateField('Drill Date', validators=[DataRequired()])
    drill_time = TimeField('Drill Time', validators=[Optional()])
    drill_type = SelectField('Drill Type', default='fire',
                             choices=[(t, t.title()) for t in compliance.DRILL_TYPES])
    duration_seconds = IntegerField('Evacuation Time (seconds)', validators=[Optional(), NumberRange(min=0)])
    weather_conditions = StringField('Weather', validators=[Optional(), Length(max=100)])
    total_children = IntegerField('Children Present', default=0, validators=[Optional(), NumberRange(min=0)])
    total_staff = IntegerField('Staff Present', default=0, validators=[Optional(), NumberRange(min=0)])
    evacuation_successful = BooleanField('Evacuation Successful', default=True)
    all_exits_used = BooleanField('All Exits Used')
    assembly_point_reached = BooleanField('Assembly Point Reached')
    headcount_verified = BooleanField('Headcount Verified')
    issues_noted = TextAreaField('Issues Noted', validators=[Optional()])
    corrective_actions = TextAreaField('Corrective Actions', validators=[Optional()])
    notes = TextAreaField('Notes', validators=[Optional()])


class CertificationForm(FlaskForm):
    user_id = SelectField('Staff Member', coerce=int, validators=[DataRequired()])
    certification_type = SelectField('Certification', choices=[
        (key, value['name']) for key, value in compliance.CERTIFICATION_TYPES.items()])
    certification_name = StringField('Description', validators=[Optional(), Length(max=200)])
    issued_date = DateField('Issued', validators=[Optional()])
    expiration_date = DateField('Expires', validators=[Optional()])
    hours_completed = FloatField('Hours', validators=[Optional(), NumberRange(min=0)])
    notes = TextAreaField('Notes', validators=[Optional()])


class PortalLoginForm(FlaskForm):
    email = StringField('Email', validators=[DataRequired(), Length(max=120),
                                             Regexp(EMAIL_PATTERN, message='Invalid email')])
    password = PasswordField('Password', validators=[DataRequired()])


class PortalPasswordForm(FlaskForm):
    new_password = PasswordField('Password', validators=[DataRequired(), Length(min=8, max=128)])
    confirm_password = PasswordField('Confirm Password',
                                     validators=[DataRequired(), EqualTo('new_password', 'Passwords do not match')])


class CreateOrganizationForm(FlaskForm):
    name = StringField('Organization Name', validators=[DataRequired(), Length(max=200)])
    owner_first_name = StringField('Owner First Name', validators=[DataRequired(), Length(max=100)])
    owner_last_name = StringField('Owner Last Name', validators=[DataRequired(), Length(max=100)])
    owner_username = StringField('Owner Username', validators=[DataRequired(), Length(min=3, max=80)])
    owner_password = PasswordField('One-time Password', validators=[DataRequired(), Length(min=8, max=128)])
    cacfp_tier = SelectField('CACFP Tier', default='tier1', choices=[('tier1', 'Tier I'), ('tier2', 'Tier II')])


class SubscriptionForm(FlaskForm):
    plan = SelectField('Plan', choices=[(key, name) for key, name in PLAN_NAMES.items() if key != 'trial'])
    billing_cycle = SelectField('Billing Cycle', default='monthly',
                                choices=[('monthly', 'Monthly'), ('annual', 'Annual')])
    amount_paid = FloatField('Amount Paid', default=0, validators=[Optional(), NumberRange(min=0)])
    payment_reference = StringField('Payment Reference', validators=[Optional(), Length(max=100)])
    notes = TextAreaField('Notes', validators=[Optional()])


class LeadStatusForm(FlaskForm):
    status = SelectField('Status', choices=[(s, s.replace('_', ' ').title()) for s in leads.LEAD_STATUSES])
    notes = TextAreaField('Notes', validators=[Optional(), Length(max=5000)])


class BulkInvoiceForm(FlaskForm):
    family_ids = SelectMultipleField('Families', coerce=int, validators=[DataRequired()])
    period_start = DateField('Period Start', validators=[DataRequired()])
    period_end = DateField('Period End', validators=[DataRequired()])
    billing_period = SelectField('Billing Period', default='weekly', choices=[
        ('weekly', 'Weekly'), ('biweekly', 'Bi-weekly'), ('monthly', 'Monthly')])

    def validate_period_end(self, field):
        if self.period_start.data and field.data and field.data < self.period_start.data:
            raise ValidationError('Period end must be on or after period start')


class FamilyForm(FlaskForm):
    family_name = StringField('Family Name', validators=[DataRequired(), Length(max=200)])
    primary_contact_name = StringField('Primary Contact', validators=[DataRequired(), Length(max=200)])
    primary_contact_email = StringField('Email', validators=[Optional(), Length(max=120),
                                                             Regexp(EMAIL_PATTERN, message='Invalid email')])
    primary_contact_phone = StringField('Phone', validators=[Optional(), Length(max=50)])
    address = StringField('Address', validators=[Optional(), Length(max=500)])
    status = SelectField('Status', default='active', choices=[('active', 'Active'), ('inactive', 'Inactive')])


class GuardianForm(FlaskForm):
    first_name = StringField('First Name', validators=[DataRequired(), Length(max=100)])
    last_name = StringField('Last Name', validators=[DataRequired(), Length(max=100)])
    email = StringField('Email', validators=[DataRequired(), Length(max=120),
                                             Regexp(EMAIL_PATTERN, message='Invalid email')])
    phone = StringField('Phone', validators=[Optional(), Length(max=50)])
    relationship_type = SelectField('Relationship', default='parent', choices=[
        ('parent', 'Parent'), ('grandparent', 'Grandparent'), ('guardian', 'Legal Guardian'), ('other', 'Other')])


class ChildForm(FlaskForm):
    first_name = StringField('First Name', validators=[DataRequired(), Length(max=100)])
    last_name = StringField('Last Name', validators=[DataRequired(), Length(max=100)])
    date_of_birth = DateField('Date of Birth', validators=[DataRequired()])
    family_id = SelectField('Family', coerce=int, validators=[DataRequired()])
    classroom_id = SelectField('Classroom', coerce=int, default=0)
    status = SelectField('Status', default='active', choices=[
        ('active', 'Active'), ('inactive', 'Inactive'), ('withdrawn', 'Withdrawn')])
    program_type = SelectField('Program', default='private', choices=[
        (p, p.replace('_', ' ').upper() if p.startswith('vpk') else p.replace('_', ' ').title())
        for p in program_billing.PROGRAM_TYPES])
    vpk_schedule_type = SelectField('VPK Schedule', default='', choices=[
        ('', 'Not VPK'), ('school_year', 'School Year'), ('summer', 'Summer')])
    weekly_rate = FloatField('Weekly Rate', validators=[Optional(), NumberRange(min=0)])
    hourly_rate = FloatField('Hourly Rate', validators=[Optional(), NumberRange(min=0)])
    days_per_week = IntegerField('Days per Week', default=5, validators=[DataRequired(), NumberRange(min=1, max=7)])
    allergies = StringField('Allergies (comma separated)', validators=[Optional(), Length(max=500)])
    dietary_restrictions = StringField('Dietary Restrictions', validators=[Optional(), Length(max=500)])

    def validate_date_of_birth(self, field):
        if field.data and field.data > date.today():
            raise ValidationError('Date of birth cannot be in the future')


class ClassroomForm(FlaskForm):
    name = StringField('Classroom Name', validators=[DataRequired(), Length(max=100)])
    age_group = SelectField('Age Group', default='preschool', choices=[
        ('infant', 'Infants'), ('toddler', 'Toddlers'), ('twos', 'Twos'),
        ('preschool', 'Preschool'), ('school_age', 'School Age')])
    capacity = IntegerField('Capacity', default=0, validators=[Optional(), NumberRange(min=0)])


class StaffForm(FlaskForm):
    first_name = StringField('First Name', validators=[DataRequired(), Length(max=100)])
    last_name = StringField('Last Name', validators=[DataRequired(), Length(max=100)])
    email = StringField('Email', validators=[Optional(), Length(max=120),
                                             Regexp(EMAIL_PATTERN, message='Invalid email')])
    role = SelectField('Role', default='teacher', choices=[
        (r, r.replace('_', ' ').title()) for r in compliance.STAFF_ROLES if r != 'owner'])
    is_director = BooleanField('Serves as Director')
    hire_date = DateField('Hire Date', validators=[Optional()])
    status = SelectField('Status', default='active', choices=[('active', 'Active'), ('inactive', 'Inactive')])


class NewStaffForm(StaffForm):
    username = StringField('Username', validators=[DataRequired(), Length(min=3, max=80)])
    password = PasswordField('One-time Password', validators=[DataRequired(), Length(min=8, max=128)])


class AttendanceEntryForm(FlaskForm):
    child_id = SelectField('Child', coerce=int, validators=[DataRequired()])
    date = DateField('Date', validators=[DataRequired()])
    check_in = TimeField('Check In', validators=[DataRequired()])
    check_out = TimeField('Check Out', validators=[Optional()])

    def validate_check_out(self, field):
        if field.data and self.check_in.data and field.data <= self.check_in.data:
            raise ValidationError('Check out must be after check in')


class SREnrollmentForm(FlaskForm):
    child_id = SelectField('Child', coerce=int, validators=[DataRequired()])
    case_number = StringField('Case Number', validators=[Optional(), Length(max=50)])
    school_year = StringField('School Year', validators=[
        DataRequired(), Regexp(r'^\d{4}-\d{4}$', message='Use the form 2025-2026')])
    rate_type = SelectField('Schedule', default='after_school', choices=[
        (key, key.replace('_', ' ').title()) for key in program_income.SR_BILLING_RATES])
    authorized_hours_weekly = FloatField('Authorized Hours / Week', default=0,
                                         validators=[Optional(), NumberRange(min=0, max=168)])
    copay_amount = FloatField('Co-Pay', default=0, validators=[Optional(), NumberRange(min=0)])
    copay_frequency = SelectField('Co-Pay Frequency', default='weekly',
                                  choices=[('weekly', 'Weekly'), ('monthly', 'Monthly')])


class SchoolCalendarForm(FlaskForm):
    BREAKS = (
        ('christmas_break_start', 'christmas_break_end'),
        ('spring_break_start', 'spring_break_end'),
        ('summer_start', 'summer_end'),
    )

    school_year = StringField('School Year', validators=[
        DataRequired(), Regexp(r'^\d{4}-\d{4}$', message='Use the form 2025-2026')])
    christmas_break_start = DateField('Christmas Break Start', validators=[Optional()])
    christmas_break_end = DateField('Christmas Break End', validators=[Optional()])
    spring_break_start = DateField('Spring Break Start', validators=[Optional()])
    spring_break_end = DateField('Spring Break End', validators=[Optional()])
    summer_start = DateField('Summer Start', validators=[Optional()])
    summer_end = DateField('Summer End', validators=[Optional()])

    def validate(self, extra_validators=None):
        if not super().validate(extra_validators):
            return False
        valid = True
        for start_field, end_field in self.BREAKS:
            start, end = self[start_field].data, self[end_field].data
            if bool(start) != bool(end):
                self[end_field].errors.append('Enter both the start and end dates')
                valid = False
            elif start and end < start:
                self[end_field].errors.append('End date must be on or after start date')
                valid = False
        return valid
