# Flask CLI command groups for bootstrap and scheduled maintenance.
#
# Run from the backend directory with FLASK_APP=dsr:
# - flask db init
#   Create all tables on DATABASE_URL (development; production uses alembic).
# - flask users create-admin --username admin --full-name "Admin" --password "secret123"
#   Create the first super user.
# - flask vouchers expire
#   Mark active vouchers past their expiry date as expired; meant for a daily cron.
# - flask vouchers overdue-report
#   Print pending hand bills and sales orders past their overdue threshold.

import click
from flask import current_app
from flask.cli import with_appcontext
from sqlalchemy import select

from . import get_db
from .constants.roles import AUTH_LOCAL, KIND_HAND_BILL, KIND_SALES_ORDER, ROLE_SUPER_USER
from .core import convertible, vouchers
from .core.errors import DomainError
from .models.audit import AuditLog
from .models.authz import Base, User
from .services.record_store import MODELS, SqlRecordStore, to_row


@click.group('db')
def db_group():
    """Schema commands."""


@db_group.command('init')
@with_appcontext
def init_db():
    """Create every table known to the models (no-op for existing tables)."""
    from . import db_engine
    Base.metadata.create_all(db_engine)
    click.echo(f'Created tables: {", ".join(sorted(Base.metadata.tables))}')


@click.group('users')
def users_group():
    """User bootstrap commands."""


@users_group.command('create-admin')
@click.option('--username', required=True)
@click.option('--full-name', required=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--email', default=None)
@with_appcontext
def create_admin(username, full_name, password, email):
    """Create a super user with local authentication."""
    session = get_db()
    if session.execute(select(User.id).where(User.username == username)).first():
        raise click.ClickException(f'User {username} already exists')
    if len(password) < 6:
        raise click.ClickException('Password must be at least 6 characters')
    user = User(
        username=username,
        full_name=full_name,
        email=email,
        role=ROLE_SUPER_USER,
        authentication_type=AUTH_LOCAL,
        is_active=True,
    )
    user.set_password(password)
    session.add(user)
    session.commit()
    click.echo(f'PASS Created super user {username} (ID: {user.id})')


@click.group('vouchers')
def vouchers_group():
    """Gift voucher and follow-up maintenance."""


@vouchers_group.command('expire')
@with_appcontext
def expire_vouchers():
    """Flip active vouchers past their expiry date to expired."""
    clock = current_app.extensions['dsr.clock']
    try:
        expired = vouchers.update_expired(SqlRecordStore(get_db()), clock=clock)
    except DomainError as e:
        raise click.ClickException(e.message)
    get_db().add(AuditLog(
        actor_user_id=0,
        action='VOUCHER.EXPIRE',
        entity='GiftVoucher',
        meta={'expired': expired, 'count': len(expired), 'source': 'cli'},
    ))
    get_db().commit()
    current_app.logger.info('voucher expiry sweep expired %d vouchers', len(expired))
    click.echo(f'Expired {len(expired)} vouchers.')


@vouchers_group.command('overdue-report')
@with_appcontext
def overdue_report():
    """List pending hand bills and sales orders that are overdue today."""
    clock = current_app.extensions['dsr.clock']
    today = clock.today()
    thresholds = {
        KIND_HAND_BILL: current_app.config['HAND_BILL_OVERDUE_DAYS'],
        KIND_SALES_ORDER: current_app.config['SALES_ORDER_OVERDUE_DAYS'],
    }
    session = get_db()
    for kind in (KIND_HAND_BILL, KIND_SALES_ORDER):
        spec = convertible.CONVERTIBLES[kind]
        model = MODELS[kind]
        rows = [to_row(o) for o in session.execute(
            select(model).where(model.status == convertible.STATUS_PENDING).order_by(model.id.asc())
        ).scalars()]
        overdue = [r for r in rows if convertible.is_overdue(r, kind, today, thresholds)]
        click.echo(f'{kind}: {len(overdue)} overdue (threshold {thresholds[kind]} days)')
        for r in overdue:
            age = convertible.age_in_days(r[spec.date_field], today)
            click.echo(f'  store={r["store_id"]} {r[spec.number_field]} age={age}d')


def register_commands(app):
    """Register all CLI commands with the Flask app."""
    app.cli.add_command(db_group)
    app.cli.add_command(users_group)
    app.cli.add_command(vouchers_group)
