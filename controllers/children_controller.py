import logging

from flask import Blueprint, flash, redirect, render_template, request, session, url_for

from access_control import feature_required, manager_required
from app_models import db, Child, Classroom, Family
from data_isolation_helpers import get_current_org_id, get_org_filtered_query, get_org_record_or_404
from forms import ChildForm, ClassroomForm

logger = logging.getLogger(__name__)

children_bp = Blueprint('children', __name__, url_prefix='/children')

CHILD_STATUSES = ('active', 'inactive', 'withdrawn')


def parse_allergies(text):
    """'Peanuts, milk' -> ['Peanuts', 'milk']; blanks and duplicates dropped."""
    allergies = []
    for item in (text or '').split(','):
        item = item.strip()
        if item and item.lower() not in [a.lower() for a in allergies]:
            allergies.append(item)
    return allergies


def _prepare_form(form):
    form.family_id.choices = [(f.id, f.family_name) for f in get_org_filtered_query(Family).filter_by(
        status='active').order_by(Family.family_name).all()]
    form.classroom_id.choices = [(0, 'No classroom')] + [
        (c.id, c.name) for c in get_org_filtered_query(Classroom).order_by(Classroom.name).all()]


def _form_relations(form):
    family = get_org_record_or_404(Family, form.family_id.data)
    classroom = get_org_record_or_404(Classroom, form.classroom_id.data) if form.classroom_id.data else None
    return family, classroom


def _apply_form(form, child, family, classroom):
    child.family_id = family.id
    child.classroom_id = classroom.id if classroom else None
    child.first_name = form.first_name.data.strip()
    child.last_name = form.last_name.data.strip()
    child.date_of_birth = form.date_of_birth.data
    child.status = form.status.data
    child.program_type = form.program_type.data
    child.vpk_schedule_type = form.vpk_schedule_type.data or None
    child.weekly_rate = form.weekly_rate.data
    child.hourly_rate = form.hourly_rate.data
    child.days_per_week = form.days_per_week.data
    child.allergies = parse_allergies(form.allergies.data)
    child.dietary_restrictions = form.dietary_restrictions.data or None


@children_bp.route('/')
@feature_required('children')
def index():
    status = request.args.get('status', 'active')
    classroom_id = request.args.get('classroom_id', type=int)
    query = get_org_filtered_query(Child)
    if status in CHILD_STATUSES:
        query = query.filter(Child.status == status)
    if classroom_id:
        query = query.filter(Child.classroom_id == classroom_id)
    children = query.order_by(Child.last_name, Child.first_name).all()
    classrooms = get_org_filtered_query(Classroom).order_by(Classroom.name).all()
    return render_template('children/index.html', children=children, classrooms=classrooms,
                           status=status, classroom_id=classroom_id, statuses=CHILD_STATUSES)


@children_bp.route('/new', methods=['GET', 'POST'])
@feature_required('children')
def create():
    form = ChildForm()
    _prepare_form(form)
    if request.method == 'GET':
        form.family_id.data = request.args.get('family_id', type=int)

    if form.validate_on_submit():
        family, classroom = _form_relations(form)
        try:
            child = Child(organization_id=get_current_org_id())
            _apply_form(form, child, family, classroom)
            db.session.add(child)
            db.session.commit()
            logger.info("Child %s enrolled in family %s by %s", child.id, child.family_id, session.get('username'))
            flash(f'{child.full_name} enrolled successfully!', 'success')
            return redirect(url_for('families.detail', family_id=child.family_id))
        except Exception as e:
            db.session.rollback()
            logger.exception("Child enrollment failed")
            flash(f'Error enrolling child: {str(e)}', 'error')
    return render_template('children/form.html', form=form, child=None)


@children_bp.route('/<int:child_id>/edit', methods=['GET', 'POST'])
@feature_required('children')
def edit(child_id):
    child = get_org_record_or_404(Child, child_id)
    form = ChildForm(obj=child)
    _prepare_form(form)
    if request.method == 'GET':
        form.allergies.data = ', '.join(child.allergies or [])
        form.classroom_id.data = child.classroom_id or 0
        form.vpk_schedule_type.data = child.vpk_schedule_type or ''

    if form.validate_on_submit():
        family, classroom = _form_relations(form)
        try:
            _apply_form(form, child, family, classroom)
            db.session.commit()
            logger.info("Child %s updated by %s", child.id, session.get('username'))
            flash('Child updated successfully!', 'success')
            return redirect(url_for('children.index'))
        except Exception as e:
            db.session.rollback()
            logger.exception("Child update failed")
            flash(f'Error updating child: {str(e)}', 'error')
    return render_template('children/form.html', form=form, child=child)


@children_bp.route('/<int:child_id>/withdraw', methods=['POST'])
@feature_required('children')
@manager_required
def withdraw(child_id):
    child = get_org_record_or_404(Child, child_id)
    try:
        child.status = 'withdrawn'
        db.session.commit()
        logger.info("Child %s withdrawn by %s", child.id, session.get('username'))
        flash(f'{child.full_name} has been withdrawn.', 'success')
    except Exception as e:
        db.session.rollback()
        flash(f'Error withdrawing child: {str(e)}', 'error')
    return redirect(url_for('children.index'))


@children_bp.route('/classrooms', methods=['GET', 'POST'])
@feature_required('classrooms')
def classrooms():
    form = ClassroomForm()
    if form.validate_on_submit():
        try:
            classroom = Classroom(organization_id=get_current_org_id())
            form.populate_obj(classroom)
            db.session.add(classroom)
            db.session.commit()
            logger.info("Classroom %s created", classroom.name)
            flash(f'Classroom {classroom.name} added.', 'success')
            return redirect(url_for('children.classrooms'))
        except Exception as e:
            db.session.rollback()
            logger.exception("Classroom creation failed")
            flash(f'Error adding classroom: {str(e)}', 'error')

    rooms = get_org_filtered_query(Classroom).order_by(Classroom.name).all()
    enrolled = {room.id: sum(1 for c in room.children if c.status == 'active') for room in rooms}
    return render_template('children/classrooms.html', form=form, classrooms=rooms, enrolled=enrolled)
