# Overview: Flask CLI command groups for bootstrap, key management, and settlement maintenance.

# backend/resaledesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "resaledesk:create_app" and DATA_KEY to a vault key.
# - Use: python -m flask <group> <command> [options]
#
# Key management:
# - resaledesk-keygen
#   Print a new random DATA_KEY (works without an app or an existing key).
# - python -m flask vault check
#   Verify the configured DATA_KEY seals and opens a sample value.
#
# System bootstrap/repair:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Settlement maintenance:
# - python -m flask purchases reconcile 42
#   Recompute settlement and status of one purchase from its payments.
# - python -m flask purchases reconcile-all
#   Recompute every purchase (safe to re-run; reconciliation is idempotent).
# - python -m flask purchases next-order-id --prefix PH
#   Show the next order id for a prefix (nothing is reserved).

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import settlement_service, order_id_service
from .services.credential_vault import CredentialVault, DecryptionFailedError
from .validation import NotFoundError, ValidationError


@click.command('generate-key')
def generate_key():
    """Print a new random DATA_KEY (64 hex chars)."""
    click.echo(CredentialVault.generate_key_hex())


@click.group('vault')
def vault_group():
    """Credential vault key commands."""


vault_group.add_command(generate_key)


@vault_group.command('check')
@with_appcontext
def vault_check():
    """Round-trip a sample value through the configured vault."""
    from . import get_vault

    vault = get_vault()
    try:
        ok = vault.open(vault.seal("vault-check")) == "vault-check"
    except DecryptionFailedError:
        ok = False
    if not ok:
        raise click.ClickException("Vault round-trip failed")
    click.echo("PASS Vault key is usable")


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()
    click.echo("CREATE Creating all tables...")
    db.create_all()
    click.echo("DONE Database reset complete")


@click.group('purchases')
def purchases_group():
    """Settlement and order id maintenance."""


@purchases_group.command('reconcile')
@click.argument('purchase_id', type=int)
@with_appcontext
def reconcile(purchase_id):
    """Recompute settlement for one purchase."""
    try:
        purchase = settlement_service.reconcile_settlement(purchase_id, commit=True)
    except NotFoundError as e:
        raise click.ClickException(str(e))
    click.echo(
        f"PASS {purchase.order_id}: status={purchase.status} "
        f"client_due={purchase.client_due_minor} vendor_due={purchase.vendor_due_minor}"
    )


@purchases_group.command('reconcile-all')
@click.option('--batch-size', default=200, show_default=True, help='Purchases per transaction')
@with_appcontext
def reconcile_all(batch_size):
    """Recompute settlement for every purchase."""
    count = settlement_service.reconcile_all(batch_size=batch_size)
    click.echo(f"PASS Reconciled {count} purchases")


@purchases_group.command('next-order-id')
@click.option('--prefix', default=None, help='Order id prefix (default: ORDER_ID_PREFIX)')
@with_appcontext
def next_order_id(prefix):
    """Show the next order id for a prefix."""
    try:
        click.echo(order_id_service.next_order_id(prefix))
    except ValidationError as e:
        raise click.ClickException(str(e))


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(vault_group)
    app.cli.add_command(system_group)
    app.cli.add_command(purchases_group)
