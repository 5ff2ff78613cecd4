# Overview: Flask CLI command groups for bootstrap, catalog seeding, and maintenance.

# backend/backoffice/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to backoffice (PowerShell: $env:FLASK_APP="backoffice").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--org "Org Name"] [--location "Main"]
#   Idempotent bootstrap: creates tables, a default organization and a default location.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Catalog seeding/inspection:
# - python -m flask catalog add-location --org-id 1 --name "Centro"
#   Create a branch in an organization.
# - python -m flask catalog add-product --org-id 1 --name "Shirt" --characteristic "Size=S,M,L" --characteristic "Color=Red,Blue"
#   Create a product with its characteristics and options.
# - python -m flask catalog variants 1
#   List a product's variants with their options and stock per location.
#
# Maintenance:
# - python -m flask maintenance find-orphan-variants [--org-id 1]
#   List unlinked variants left behind by failed compensations.
# - python -m flask maintenance cleanup-orphan-variants [--org-id 1] --yes
#   Delete orphan variants that hold no stock.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import (
    Characteristic,
    CharacteristicOption,
    Location,
    Organization,
    Product,
    StockEntry,
    Variant,
)
from .services import maintenance_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--org', 'org_name', default='Default Organization', help='Organization name')
@click.option('--org-code', default='DEFAULT', help='Organization code')
@click.option('--location', 'location_name', default='Main', help='Default location name')
@with_appcontext
def init_system(org_name, org_code, location_name):
    """
    Initialize tables, a default organization and a default location.

    Safe to run repeatedly.
    """
    click.echo("START Initializing back-office database...")
    db.create_all()

    org = db.session.query(Organization).filter_by(code=org_code).first()
    if not org:
        org = Organization(name=org_name, code=org_code, is_active=True)
        db.session.add(org)
        db.session.commit()
        click.echo(f"PASS Created organization: {org.name} (ID: {org.id}, Code: {org.code})")
    else:
        click.echo(f"PASS Using existing organization: {org.name} (ID: {org.id})")

    location = db.session.query(Location).filter_by(org_id=org.id, name=location_name).first()
    if not location:
        location = Location(org_id=org.id, name=location_name)
        db.session.add(location)
        db.session.commit()
        click.echo(f"PASS Created location: {location.name} (ID: {location.id}, Org: {org.name})")
    else:
        click.echo(f"PASS Using existing location: {location.name} (ID: {location.id})")


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

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('catalog')
def catalog_group():
    """Catalog seeding and inspection commands."""


def _require_org(org_id: int) -> Organization:
    org = db.session.get(Organization, org_id)
    if org is None:
        raise click.ClickException(f"Organization {org_id} not found")
    return org


def _parse_characteristic(raw: str) -> tuple[str, list[str]]:
    name, sep, values = raw.partition("=")
    name = name.strip()
    options = [v.strip() for v in values.split(",") if v.strip()]
    if not sep or not name or not options:
        raise click.BadParameter(f"expected NAME=opt1,opt2 but got {raw!r}", param_hint="--characteristic")
    if len(set(options)) != len(options):
        raise click.BadParameter(f"duplicate options in {raw!r}", param_hint="--characteristic")
    return name, options


@catalog_group.command('add-location')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--name', required=True, help='Location name (unique per organization)')
@with_appcontext
def add_location(org_id, name):
    """Create a location (branch) in an organization."""
    org = _require_org(org_id)
    existing = db.session.query(Location).filter_by(org_id=org.id, name=name).first()
    if existing:
        click.echo(f"FAIL Location '{name}' already exists (ID: {existing.id})")
        return

    location = Location(org_id=org.id, name=name)
    db.session.add(location)
    db.session.commit()
    click.echo(f"PASS Created location: {location.name} (ID: {location.id}, Org: {org.name})")


@catalog_group.command('add-product')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--name', required=True, help='Product name')
@click.option('--characteristic', 'characteristics', multiple=True, help='NAME=opt1,opt2 (repeatable)')
@with_appcontext
def add_product(org_id, name, characteristics):
    """Create a product with its characteristics and options."""
    org = _require_org(org_id)
    parsed = [_parse_characteristic(raw) for raw in characteristics]
    names = [n for n, _ in parsed]
    if len(set(names)) != len(names):
        raise click.BadParameter("characteristic names must be unique", param_hint="--characteristic")

    product = Product(org_id=org.id, name=name)
    for characteristic_name, values in parsed:
        characteristic = Characteristic(name=characteristic_name)
        characteristic.options = [CharacteristicOption(value=v) for v in values]
        product.characteristics.append(characteristic)
    db.session.add(product)
    db.session.commit()

    click.echo(f"PASS Created product: {product.name} (ID: {product.id})")
    for characteristic in product.characteristics:
        values = ", ".join(f"{o.value} [{o.id}]" for o in characteristic.options)
        click.echo(f"     {characteristic.name} [{characteristic.id}]: {values}")


@catalog_group.command('variants')
@click.argument('product_id', type=int)
@with_appcontext
def list_variants(product_id):
    """List a product's variants with options and stock per location."""
    product = db.session.get(Product, product_id)
    if product is None:
        raise click.ClickException(f"Product {product_id} not found")

    variants = db.session.query(Variant).filter_by(product_id=product.id).order_by(Variant.id.asc()).all()
    if not variants:
        click.echo("No variants found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<6} {'Options':<40} {'Location':<20} {'Qty':<6} {'Price'}")
    click.echo("="*80)

    for variant in variants:
        label = " / ".join(
            f"{link.option.characteristic.name}={link.option.value}"
            for link in sorted(variant.option_links, key=lambda l: l.option_id)
        ) or "-"
        entries = (
            db.session.query(StockEntry)
            .filter_by(variant_id=variant.id)
            .order_by(StockEntry.location_id.asc())
            .all()
        )
        if not entries:
            click.echo(f"{variant.id:<6} {label:<40} {'-':<20} {0:<6} -")
            continue
        for entry in entries:
            price = f"${entry.price_cents / 100:,.2f}" if entry.price_cents is not None else "-"
            click.echo(f"{variant.id:<6} {label:<40} {entry.location.name:<20} {entry.quantity:<6} {price}")

    click.echo("="*80 + "\n")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('find-orphan-variants')
@click.option('--org-id', type=int, default=None, help='Limit to one organization')
@with_appcontext
def find_orphan_variants_cli(org_id):
    """List variants without option links (manual cleanup required)."""
    orphans = maintenance_service.find_orphan_variants(org_id=org_id)
    if not orphans:
        click.echo("No orphan variants found.")
        return
    for variant in orphans:
        click.echo(f"WARN  variant {variant.id} (org {variant.org_id}, product {variant.product_id}) has no option links")
    click.echo(f"{len(orphans)} orphan variant(s) found.")


@maintenance_group.command('cleanup-orphan-variants')
@click.option('--org-id', type=int, default=None, help='Limit to one organization')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def cleanup_orphan_variants_cli(org_id, yes):
    """Delete orphan variants that hold no stock."""
    if not yes:
        click.confirm("WARN This deletes unlinked variants. Continue?", abort=True)
    deleted = maintenance_service.cleanup_orphan_variants(org_id=org_id)
    click.echo(f"Deleted {deleted} orphan variant(s).")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(maintenance_group)
