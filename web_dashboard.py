from __future__ import annotations
import logging
import os

import click
from flask.cli import with_appcontext
from workforce_dashboard import create_app
from workforce_dashboard.extensions import db
from workforce_dashboard.models import ManagerAssignment, User
from workforce_dashboard.tasks import get_sync_scheduler
from workforce_sync.domain.card_numbers import normalize_card_number
from workforce_sync.services.sync_runner import run_sync

logging.basicConfig(
    level=os.getenv('LOG_LEVEL', 'INFO'),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

app = create_app()


@app.cli.command('create-user')
@click.argument('email')
@click.argument('name')
@click.argument('password')
@click.option('--card-no', default='', help='Employee card number linked to this user')
@click.option('--admin', is_flag=True, default=False, help='Grant full admin access')
@with_appcontext
def create_user(email: str, name: str, password: str, card_no: str, admin: bool):
    email = email.strip().lower()
    if User.query.filter_by(email=email).first():
        click.echo('Користувач з таким email вже існує.')
        return
    user = User(email=email, name=name, employee_card_no=card_no.strip() or None, is_admin=admin)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    click.echo(f'Створено користувача {email}')


@app.cli.command('add-manager-assignment')
@click.argument('manager_card_no')
@click.option('--department-id', type=int, default=None)
@click.option('--designation-id', type=int, default=None)
@click.option('--org-unit-id', type=int, default=None)
@with_appcontext
def add_manager_assignment(manager_card_no: str, department_id, designation_id, org_unit_id):
    card = normalize_card_number(manager_card_no)
    if not card:
        raise click.BadParameter('card number must contain digits', param_hint='MANAGER_CARD_NO')
    if department_id is None and designation_id is None and org_unit_id is None:
        raise click.UsageError('at least one of --department-id, --designation-id, --org-unit-id is required')
    row = ManagerAssignment(
        manager_card_no=card,
        department_id=department_id,
        designation_id=designation_id,
        org_unit_id=org_unit_id,
    )
    db.session.add(row)
    db.session.commit()
    click.echo(f'Додано призначення #{row.id} для менеджера {card}')


@app.cli.command('refresh-schedules')
@with_appcontext
def refresh_schedules():
    scheduler = get_sync_scheduler()
    scheduled = scheduler.refresh_schedules() if scheduler else {}
    for source_id, minutes in sorted(scheduled.items()):
        click.echo(f'{source_id}: every {minutes} min')
    click.echo(f'Активних джерел: {len(scheduled)}')


@app.cli.command('sync-source')
@click.argument('source_id')
@with_appcontext
def sync_source(source_id: str):
    result = run_sync(source_id, trigger='cli')
    if result is None:
        raise click.ClickException(f'source {source_id} not found')
    click.echo(
        f"{result['status']}: {result['records_imported']}/{result['records_total']} imported, "
        f"{result['records_failed']} failed"
    )


if __name__ == '__main__':
    app.run(host='0.0.0.0', port=5000, debug=True)
