import logging
from datetime import date, datetime

from flask import Blueprint, Response, flash, redirect, render_template, request, session, url_for

import cacfp
import program_billing
import program_income
import report_export
import tuition_billing
from access_control import current_organization, feature_required
from app_models import (db, Attendance, Child, Family, Invoice, MealAttendance, Payment,
                        SchoolCalendar, SREnrollment)
from data_isolation_helpers import get_current_org_id, get_org_filtered_query, get_org_record_or_404
from forms import BulkInvoiceForm, LateFeeForm, MultiWeekInvoiceForm, PaymentForm

logger = logging.getLogger(__name__)

billing_bp = Blueprint('billing', __name__, url_prefix='/billing')

DEFAULT_RATE_TEMPLATE = 'preschool_fulltime'


def _parse_date(value, default=None):
    if not value:
        return default
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except ValueError:
        return default


def _next_invoice_number(organization_id, today=None):
    year = (today or date.today()).year
    return tuition_billing.next_invoice_number(Invoice.last_sequence(organization_id, year), year)


def _family_choices():
    families = get_org_filtered_query(Family).filter_by(status='active').order_by(Family.family_name).all()
    return [(f.id, f.family_name) for f in families]


def _child_choices():
    children = get_org_filtered_query(Child).filter_by(status='active').order_by(Child.last_name).all()
    return [(c.id, f"{c.full_name} ({c.family.family_name})") for c in children]


@billing_bp.route('/')
@feature_required('billing')
def invoices():
    status = request.args.get('status', '').strip()
    query = get_org_filtered_query(Invoice)
    if status in tuition_billing.INVOICE_STATUSES:
        query = query.filter_by(status=status)
    invoice_list = query.order_by(Invoice.created_at.desc()).all()
    return render_template('billing/invoices.html', invoices=invoice_list, status=status,
                           statuses=tuition_billing.INVOICE_STATUSES,
                           status_colors=report_export.INVOICE_STATUS_COLORS,
                           late_fee_form=LateFeeForm())


def _child_rates(children, full_week=False):
    """Rate rows for build_multi_week_invoice; full_week bills each week at the whole weekly rate."""
    default_template = tuition_billing.RATE_TEMPLATES[DEFAULT_RATE_TEMPLATE]
    return [{
        'child_id': child.id,
        'child_name': child.full_name,
        'weekly_rate': child.weekly_rate or default_template['weekly_rate'],
        'days_per_week': 5 if full_week else (child.days_per_week or default_template['days_per_week']),
    } for child in children]


def _save_tuition_invoice(family, child_rates, weeks, billing_period, discount=0, discount_percent=0,
                          additional_items=(), notes=None):
    """Build, number and add a draft tuition invoice; the caller commits."""
    organization_id = get_current_org_id()
    totals = tuition_billing.build_multi_week_invoice(
        child_rates, weeks,
        discount=discount,
        discount_percent=discount_percent,
        additional_items=additional_items,
    )
    invoice = Invoice(
        organization_id=organization_id,
        family_id=family.id,
        invoice_number=_next_invoice_number(organization_id),
        subtotal=totals['subtotal'],
        discount=totals['discount'],
        total=totals['total'],
        amount_paid=0.0,
        status='draft',
        due_date=totals['due_date'],
        period_start=totals['period_start'],
        period_end=totals['period_end'],
        billing_period=billing_period,
        notes=notes,
        line_items=totals['line_items'],
    )
    db.session.add(invoice)
    return invoice


@billing_bp.route('/invoices/new', methods=['GET', 'POST'])
@feature_required('billing')
def create_multi_week_invoice():
    form = MultiWeekInvoiceForm()
    form.family_id.choices = _family_choices()
    form.child_ids.choices = _child_choices()

    if form.validate_on_submit():
        family = get_org_record_or_404(Family, form.family_id.data)
        children = get_org_filtered_query(Child).filter(Child.id.in_(form.child_ids.data),
                                                        Child.family_id == family.id).all()
        if len(children) != len(form.child_ids.data):
            flash('Selected children must belong to the selected family.', 'error')
            return render_template('billing/new_invoice.html', form=form,
                                   rate_templates=tuition_billing.RATE_TEMPLATES)

        try:
            weeks = tuition_billing.split_weeks(form.period_start.data, form.period_end.data,
                                                form.days_per_week_attended.data)
            additional_items = []
            if form.registration_fee.data:
                additional_items.append({
                    'item_type': 'registration',
                    'description': 'Registration Fee',
                    'quantity': 1,
                    'unit_price': form.registration_fee.data,
                    'total': form.registration_fee.data,
                })

            invoice = _save_tuition_invoice(
                family, _child_rates(children), weeks, form.billing_period.data,
                discount=form.discount.data or 0,
                discount_percent=form.discount_percent.data or 0,
                additional_items=additional_items,
                notes=form.notes.data,
            )
            db.session.commit()
            logger.info("Invoice %s created for family %s (%d weeks, total %.2f)",
                        invoice.invoice_number, family.id, len(weeks), invoice.total)
            flash(f'Invoice {invoice.invoice_number} created successfully!', 'success')
            return redirect(url_for('billing.invoice_detail', invoice_id=invoice.id))
        except Exception as e:
            db.session.rollback()
            logger.exception("Multi-week invoice creation failed")
            flash(f'Error creating invoice: {str(e)}', 'error')

    return render_template('billing/new_invoice.html', form=form,
                           rate_templates=tuition_billing.RATE_TEMPLATES)


@billing_bp.route('/invoices/bulk', methods=['GET', 'POST'])
@feature_required('billing')
def bulk_invoices():
    """One draft invoice per selected family, every week billed at the full weekly rate."""
    form = BulkInvoiceForm()
    form.family_ids.choices = _family_choices()
    results = None

    if form.validate_on_submit():
        start, end = form.period_start.data, form.period_end.data
        weeks = tuition_billing.full_weeks(start, end)
        results = {'success': 0, 'failed': 0, 'errors': []}
        for family_id in form.family_ids.data:
            family = get_org_record_or_404(Family, family_id)
            children = get_org_filtered_query(Child).filter_by(family_id=family.id, status='active').all()
            if not children:
                results['failed'] += 1
                results['errors'].append(f'{family.family_name}: No active children found')
                continue
            try:
                invoice = _save_tuition_invoice(family, _child_rates(children, full_week=True), weeks,
                                                form.billing_period.data)
                db.session.commit()
                results['success'] += 1
                logger.info("Bulk invoice %s created for family %s", invoice.invoice_number, family.id)
            except Exception as e:
                db.session.rollback()
                logger.exception("Bulk invoice failed for family %s", family.id)
                results['failed'] += 1
                results['errors'].append(f'{family.family_name}: {e}')

        flash(f"{results['success']} invoice(s) created, {results['failed']} failed.",
              'success' if not results['failed'] else 'warning')

    return render_template('billing/bulk_invoices.html', form=form, results=results)


@billing_bp.route('/invoices/<int:invoice_id>')
@feature_required('billing')
def invoice_detail(invoice_id):
    invoice = get_org_record_or_404(Invoice, invoice_id)
    return render_template('billing/invoice_detail.html', invoice=invoice,
                           payment_form=PaymentForm(),
                           status_label=report_export.INVOICE_STATUS_LABELS.get(invoice.status),
                           status_color=report_export.INVOICE_STATUS_COLORS.get(invoice.status))


@billing_bp.route('/invoices/<int:invoice_id>/send', methods=['POST'])
@feature_required('billing')
def send_invoice(invoice_id):
    invoice = get_org_record_or_404(Invoice, invoice_id)
    if invoice.status != 'draft':
        flash('Only draft invoices can be sent.', 'warning')
        return redirect(url_for('billing.invoice_detail', invoice_id=invoice.id))
    try:
        invoice.status = 'sent'
        db.session.commit()
        flash(f'Invoice {invoice.invoice_number} marked as sent.', 'success')
    except Exception as e:
        db.session.rollback()
        flash(f'Error sending invoice: {str(e)}', 'error')
    return redirect(url_for('billing.invoice_detail', invoice_id=invoice.id))


@billing_bp.route('/invoices/<int:invoice_id>/cancel', methods=['POST'])
@feature_required('billing')
def cancel_invoice(invoice_id):
    invoice = get_org_record_or_404(Invoice, invoice_id)
    if invoice.amount_paid:
        flash('Invoices with payments cannot be cancelled.', 'error')
        return redirect(url_for('billing.invoice_detail', invoice_id=invoice.id))
    try:
        invoice.status = 'cancelled'
        db.session.commit()
        flash(f'Invoice {invoice.invoice_number} cancelled.', 'success')
    except Exception as e:
        db.session.rollback()
        flash(f'Error cancelling invoice: {str(e)}', 'error')
    return redirect(url_for('billing.invoice_detail', invoice_id=invoice.id))


@billing_bp.route('/invoices/<int:invoice_id>/payments', methods=['POST'])
@feature_required('billing')
def record_payment(invoice_id):
    invoice = get_org_record_or_404(Invoice, invoice_id)
    form = PaymentForm()
    if invoice.status in ('cancelled', 'paid'):
        flash(f'Cannot record a payment on a {invoice.status} invoice.', 'error')
        return redirect(url_for('billing.invoice_detail', invoice_id=invoice.id))
    if not form.validate_on_submit():
        flash('Payment amount must be greater than zero.', 'error')
        return redirect(url_for('billing.invoice_detail', invoice_id=invoice.id))

    try:
        amount_paid, status = tuition_billing.apply_payment(invoice.total, invoice.amount_paid, form.amount.data)
        payment = Payment(
            organization_id=invoice.organization_id,
            invoice_id=invoice.id,
            amount=form.amount.data,
            payment_method=form.payment_method.data,
            reference=form.reference.data,
            notes=form.notes.data,
            recorded_by=session.get('user_id'),
        )
        db.session.add(payment)
        invoice.amount_paid = amount_paid
        invoice.status = status
        if status == 'paid':
            invoice.paid_at = datetime.utcnow()
        db.session.commit()
        logger.info("Payment of %.2f recorded on invoice %s (%s)", form.amount.data,
                    invoice.invoice_number, status)
        flash(f'Payment of ${form.amount.data:,.2f} recorded!', 'success')
    except Exception as e:
        db.session.rollback()
        logger.exception("Payment recording failed for invoice %s", invoice.id)
        flash(f'Error recording payment: {str(e)}', 'error')
    return redirect(url_for('billing.invoice_detail', invoice_id=invoice.id))


@billing_bp.route('/late-fees', methods=['POST'])
@feature_required('billing')
def apply_late_fees():
    form = LateFeeForm()
    if not form.validate_on_submit():
        flash('Invalid late fee.', 'error')
        return redirect(url_for('billing.invoices'))

    today = date.today()
    updated = 0
    try:
        open_invoices = get_org_filtered_query(Invoice).filter(
            Invoice.status.in_(tuition_billing.OPEN_STATUSES),
            Invoice.due_date < today,
        ).all()
        for invoice in open_invoices:
            invoice.status = 'overdue'
            line_items = list(invoice.line_items or [])
            if tuition_billing.has_late_fee(line_items):
                continue
            fee = tuition_billing.late_fee(invoice.total, form.fee_amount.data, form.fee_percent.data)
            if fee <= 0:
                continue
            line_items.append(tuition_billing.late_fee_item(fee))
            # JSON columns only notice reassignment
            invoice.line_items = line_items
            invoice.total = round((invoice.total or 0) + fee, 2)
            updated += 1
        db.session.commit()
        logger.info("Late fees applied to %d invoices", updated)
        flash(f'Late fees applied to {updated} invoice(s).', 'success')
    except Exception as e:
        db.session.rollback()
        flash(f'Error applying late fees: {str(e)}', 'error')
    return redirect(url_for('billing.invoices'))


@billing_bp.route('/invoices/<int:invoice_id>/document')
@feature_required('billing')
def invoice_document(invoice_id):
    invoice = get_org_record_or_404(Invoice, invoice_id)
    html = render_template('billing/invoice_document.html',
                           **report_export.invoice_context(invoice, current_organization()))
    if request.args.get('download'):
        return Response(html, mimetype='text/html', headers={
            'Content-Disposition': f'attachment; filename="{invoice.invoice_number}.html"'
        })
    return html


@billing_bp.route('/export.csv')
@feature_required('billing')
def export_invoices():
    invoice_list = get_org_filtered_query(Invoice).order_by(Invoice.created_at.desc()).all()
    csv_text = report_export.invoices_csv(invoice_list)
    return Response(csv_text, mimetype='text/csv', headers={
        'Content-Disposition': f'attachment; filename="invoices_{date.today():%Y%m%d}.csv"'
    })


@billing_bp.route('/summary')
@feature_required('billing')
def summary():
    today = date.today()
    start = _parse_date(request.args.get('start'), today.replace(day=1))
    end = _parse_date(request.args.get('end'), today)
    start_dt = datetime.combine(start, datetime.min.time())
    end_dt = datetime.combine(end, datetime.max.time())

    invoice_list = get_org_filtered_query(Invoice).filter(Invoice.created_at.between(start_dt, end_dt)).all()
    payment_list = get_org_filtered_query(Payment).filter(Payment.paid_at.between(start_dt, end_dt)).all()
    billing = tuition_billing.billing_summary(invoice_list, payment_list)
    balances = tuition_billing.families_with_balance(get_org_filtered_query(Invoice).all())
    return render_template('billing/summary.html', summary=billing, families=balances, start=start, end=end)


def child_billing_data(child, start, end):
    """Collect what program billing needs to know about one child for a period."""
    attendance = get_org_filtered_query(Attendance).filter(
        Attendance.child_id == child.id,
        Attendance.date.between(start, end),
    ).all()
    hours = program_billing.attendance_hours(attendance)
    data = {
        'child_id': child.id,
        'child_name': child.full_name,
        'program_type': child.program_type or 'private',
        'vpk_schedule_type': child.vpk_schedule_type,
        'weekly_rate': child.weekly_rate,
        'hourly_rate': child.hourly_rate,
        'total_hours': hours,
    }
    if data['program_type'] in ('school_readiness', 'sr_copay'):
        enrollment = get_org_filtered_query(SREnrollment).filter_by(
            child_id=child.id, school_year=program_billing.school_year(start), status='active'
        ).first()
        if enrollment:
            data.update({
                'sr_authorized_hours_weekly': enrollment.authorized_hours_weekly,
                'sr_copay_amount': enrollment.copay_amount,
                'sr_copay_frequency': enrollment.copay_frequency,
                'sr_hours_used': hours,
            })
    return data


@billing_bp.route('/program-billing', methods=['GET', 'POST'])
@feature_required('programs')
def program_invoice():
    families = get_org_filtered_query(Family).filter_by(status='active').order_by(Family.family_name).all()
    today = date.today()
    family_id = request.values.get('family_id', type=int)
    start = _parse_date(request.values.get('start'), today.replace(day=1))
    end = _parse_date(request.values.get('end'), today)

    preview = None
    family = None
    if family_id:
        family = get_org_record_or_404(Family, family_id)
        children = get_org_filtered_query(Child).filter_by(family_id=family.id, status='active').all()
        try:
            preview = program_billing.family_program_billing(
                [child_billing_data(child, start, end) for child in children], start, end)
        except ValueError as e:
            flash(str(e), 'error')

    if request.method == 'POST' and preview is not None:
        if not preview['line_items']:
            flash('Nothing to bill for this family and period.', 'warning')
            return redirect(url_for('billing.program_invoice', family_id=family.id,
                                    start=start.isoformat(), end=end.isoformat()))
        try:
            organization_id = get_current_org_id()
            invoice = Invoice(
                organization_id=organization_id,
                family_id=family.id,
                invoice_number=_next_invoice_number(organization_id),
                subtotal=preview['subtotal'],
                discount=0.0,
                total=preview['subtotal'],
                amount_paid=0.0,
                status='draft',
                due_date=tuition_billing.default_due_date(start),
                period_start=start,
                period_end=end,
                billing_period='monthly',
                line_items=preview['line_items'],
            )
            db.session.add(invoice)
            db.session.commit()
            logger.info("Program invoice %s created for family %s", invoice.invoice_number, family.id)
            flash(f'Invoice {invoice.invoice_number} created successfully!', 'success')
            return redirect(url_for('billing.invoice_detail', invoice_id=invoice.id))
        except Exception as e:
            db.session.rollback()
            flash(f'Error creating invoice: {str(e)}', 'error')

    return render_template('billing/program_billing.html', families=families, family=family,
                           start=start, end=end, preview=preview)


@billing_bp.route('/income')
@feature_required('accounting')
def income():
    organization = current_organization()
    today = date.today()
    year = request.args.get('year', today.year, type=int)
    month = request.args.get('month', today.month, type=int)
    if not 1 <= month <= 12:
        flash('Invalid month.', 'error')
        return redirect(url_for('billing.income'))
    if not cacfp.valid_report_year(year):
        flash('Invalid year.', 'error')
        return redirect(url_for('billing.income'))

    children = get_org_filtered_query(Child).filter_by(status='active').all()
    month_start, month_end = cacfp.month_bounds(year, month)
    meals = get_org_filtered_query(MealAttendance).filter(
        MealAttendance.served.is_(True),
        MealAttendance.meal_date.between(month_start, month_end),
    ).all()
    enrollments = get_org_filtered_query(SREnrollment).filter_by(status='active').all()
    school_calendar = get_org_filtered_query(SchoolCalendar).filter_by(is_active=True).first()

    breakdown = program_income.monthly_income_breakdown(
        year, month, children, meals, enrollments, school_calendar, organization.cacfp_tier or 'tier1')
    return render_template('billing/income.html', breakdown=breakdown, year=year, month=month)
