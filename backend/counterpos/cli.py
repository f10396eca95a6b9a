# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/counterpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--with-samples]
#   Idempotent bootstrap: creates tables, default role matrices and the admin account.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Staff:
# - python -m flask staff create --username jane --full-name "Jane Doe" --role Cashier
# - python -m flask staff list
#
# Permission inspection:
# - python -m flask perms list [--role Cashier]
# - python -m flask perms check jane Invoices add

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User, Product, Customer, STAFF_ROLES
from .permissions import MODULES, ACTIONS
from .services.auth_service import create_user, PasswordValidationError
from .services import permission_service


SAMPLE_PRODUCTS = [
    # name, sku, barcode, category, retail, wholesale, vip, cost, stock, min
    ("Wireless Mouse", "WM-001", "1234567890123", "Electronics", "29.99", "24.99", "22.99", "15.00", 45, 20),
    ("USB-C Cable 2m", "UC-002", "1234567890124", "Accessories", "12.99", "10.99", "9.99", "5.00", 8, 25),
    ("Mechanical Keyboard", "MK-003", "1234567890125", "Electronics", "89.99", "79.99", "74.99", "50.00", 8, 15),
    ("Desk Lamp LED", "DL-004", "1234567890126", "Furniture", "39.99", "34.99", "32.99", "20.00", 0, 10),
    ("Notebook A5", "NB-005", "1234567890127", "Stationery", "4.99", "3.99", "3.49", "2.00", 120, 50),
]

SAMPLE_CUSTOMERS = [
    ("Sarah Johnson", "sarah.j@email.com", "+1-555-0123", "VIP"),
    ("Mike Chen", "mike.c@email.com", "+1-555-0124", "Member"),
    ("Emily Davis", "emily.d@email.com", "+1-555-0125", "Wholesale"),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-username', default='admin', help='Admin username')
@click.option('--admin-password', default='Password123!', help='Admin password')
@click.option('--with-samples', is_flag=True, help='Also create sample products and customers')
@with_appcontext
def init_system(admin_username, admin_password, with_samples):
    """
    Initialize CounterPOS: tables, role matrices and an Admin account.

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing CounterPOS...")

    db.create_all()

    click.echo("\nSECURITY Initializing role permissions...")
    created = permission_service.initialize_role_permissions()
    click.echo(f"PASS Created {created} role matrices ({', '.join(STAFF_ROLES)})")

    click.echo("\nUSERS Creating admin account...")
    if db.session.query(User).filter_by(username=admin_username).first():
        click.echo(f"WARN  User '{admin_username}' already exists, skipping...")
    else:
        try:
            create_user(admin_username, admin_password, "System Administrator", "Admin")
            click.echo(f"PASS Created user: {admin_username} with role 'Admin'")
        except PasswordValidationError as e:
            click.echo(f"FAIL Password validation failed for '{admin_username}': {str(e)}")

    if with_samples:
        _seed_samples()

    click.echo("\n" + "="*60)
    click.echo("DONE CounterPOS Initialized Successfully!")
    click.echo("="*60)


def _seed_samples() -> None:
    click.echo("\nCATALOG Creating sample data...")
    for name, sku, barcode, category, retail, wholesale, vip, cost, stock, min_stock in SAMPLE_PRODUCTS:
        if db.session.query(Product).filter_by(sku=sku).first():
            continue
        db.session.add(Product(
            name=name,
            sku=sku,
            barcode=barcode,
            category=category,
            retail_price=retail,
            wholesale_price=wholesale,
            vip_price=vip,
            cost_price=cost,
            current_stock=stock,
            min_stock=min_stock,
        ))
        click.echo(f"PASS Created product: {name}")

    for name, email, phone, customer_type in SAMPLE_CUSTOMERS:
        if db.session.query(Customer).filter_by(email=email).first():
            continue
        db.session.add(Customer(name=name, email=email, phone=phone, type=customer_type))
        click.echo(f"PASS Created customer: {name}")

    db.session.commit()


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


@click.group('staff')
def staff_group():
    """Staff account commands."""


@staff_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--full-name', prompt=True, help='Full name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(STAFF_ROLES)), prompt=True, help='Role')
@with_appcontext
def create_staff_cli(username, full_name, password, role):
    """
    Create a staff account.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        create_user(username, password, full_name, role)
        click.echo(f"PASS Created user: {username} with role '{role}'")
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
    except ValueError as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")


@staff_group.command('list')
@with_appcontext
def list_staff_cli():
    """List all staff accounts."""
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Full name':<30} {'Role':<12} {'Status'}")
    click.echo("="*80)
    for user in users:
        click.echo(f"{user.id:<5} {user.username:<20} {user.full_name:<30} {user.role:<12} {user.status}")
    click.echo("="*80 + "\n")


@click.group('perms')
def perms_group():
    """Permission inspection commands."""


@perms_group.command('list')
@click.option('--role', help='Filter by role name')
@with_appcontext
def list_permissions_cli(role):
    """Print role matrices, one row per module."""
    rows = permission_service.list_roles()
    if role:
        rows = [r for r in rows if r.role == role]
        if not rows:
            click.echo(f"FAIL Role '{role}' not found")
            return

    for row in rows:
        click.echo(f"\n{'='*60}")
        click.echo(f"Role: {row.role}")
        click.echo(f"{'='*60}")
        click.echo(f"{'Module':<12} " + " ".join(f"{a:<7}" for a in ACTIONS))
        for module in MODULES:
            flags = (row.permissions or {}).get(module) or {}
            click.echo(f"{module:<12} " + " ".join(f"{('yes' if flags.get(a) else '-'):<7}" for a in ACTIONS))


@perms_group.command('check')
@click.argument('username')
@click.argument('module')
@click.argument('action')
@with_appcontext
def check_permission_cli(username, module, action):
    """Check if a user's role grants ACTION on MODULE."""
    user = db.session.query(User).filter_by(username=username).first()

    if not user:
        click.echo(f"FAIL User '{username}' not found")
        return

    if permission_service.has_permission(user.role, module, action):
        click.echo(f"PASS User '{username}' ({user.role}) HAS {module}.{action}")
    else:
        click.echo(f"FAIL User '{username}' ({user.role}) DOES NOT HAVE {module}.{action}")


def register_commands(app):
    """Register CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(staff_group)
    app.cli.add_command(perms_group)
