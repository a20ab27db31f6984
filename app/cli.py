"""CLI tools for certification administration and the reminder sweep."""

import logging
from uuid import UUID

import click

from app.db.enums import AdminRole
from app.db.models import AdminUser, Tenant
from app.db.session import SessionLocal


@click.group()
def cli():
    """TrainKit CLI tools."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.option("--name", required=True, help="Training provider name")
@click.option("--slug", required=True, help="URL-friendly slug (lowercase, no spaces)")
@click.option("--contact-email", default=None, help="Bookings email shown in reminders")
@click.option("--contact-phone", default=None, help="Bookings phone shown in reminders")
@click.option("--website", default=None, help="Website shown in reminders")
def create_tenant(name: str, slug: str, contact_email: str | None, contact_phone: str | None, website: str | None):
    """
    Create a training provider tenant.

    Example:
        python -m app.cli create-tenant --name "Acme Training" --slug "acme"
    """
    db = SessionLocal()
    try:
        # Validate slug format
        slug = slug.lower().strip()
        if not slug.replace("-", "").replace("_", "").isalnum():
            click.echo("❌ Slug must be alphanumeric (with optional hyphens/underscores)")
            return

        existing = db.query(Tenant).filter(Tenant.slug == slug).first()
        if existing:
            click.echo(f"❌ Tenant with slug '{slug}' already exists")
            return

        tenant = Tenant(
            name=name,
            slug=slug,
            contact_email=contact_email,
            contact_phone=contact_phone,
            website=website,
        )
        db.add(tenant)
        db.commit()

        click.echo(f"✓ Created tenant: {name}")
        click.echo(f"  ID: {tenant.id}")
        click.echo(f"  Slug: {slug}")

    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()


@cli.command()
@click.option("--email", required=True, help="Admin email address")
@click.option("--display-name", default=None, help="Name shown in the admin UI")
@click.option(
    "--role",
    type=click.Choice([r.value for r in AdminRole]),
    default=AdminRole.MANAGER.value,
    show_default=True,
)
@click.option("--tenant-slug", default=None, help="Tenant slug (omit for a platform admin)")
def create_admin(email: str, display_name: str | None, role: str, tenant_slug: str | None):
    """
    Create an admin account.

    Example:
        python -m app.cli create-admin --email "ops@acme.com" --role MANAGER --tenant-slug acme
    """
    db = SessionLocal()
    try:
        email = email.lower().strip()
        if db.query(AdminUser).filter(AdminUser.email == email).first():
            click.echo(f"❌ Admin already exists: {email}")
            return

        tenant_id = None
        if tenant_slug:
            tenant = db.query(Tenant).filter(Tenant.slug == tenant_slug.lower()).first()
            if not tenant:
                click.echo(f"❌ Tenant not found: {tenant_slug}")
                return
            tenant_id = tenant.id
        elif role != AdminRole.SUPER_ADMIN.value:
            click.echo("❌ Only SUPER_ADMIN accounts may be created without a tenant")
            return

        admin = AdminUser(
            tenant_id=tenant_id,
            email=email,
            display_name=display_name or email.partition("@")[0],
            role=role,
        )
        db.add(admin)
        db.commit()

        click.echo(f"✓ Created admin {email} with role: {role}")
        click.echo(f"  ID: {admin.id}")
        click.echo(f"  Tenant: {tenant_slug or '(platform)'}")

    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()


@cli.command()
@click.option("--email", required=True, help="Admin email to revoke sessions for")
def revoke_sessions(email: str):
    """
    Revoke all sessions for an admin by bumping their token_version.

    Example:
        python -m app.cli revoke-sessions --email "ops@acme.com"
    """
    db = SessionLocal()
    try:
        admin = db.query(AdminUser).filter(AdminUser.email == email.lower()).first()
        if not admin:
            click.echo(f"❌ Admin not found: {email}")
            return

        old_version = admin.token_version
        admin.token_version += 1
        db.commit()

        click.echo(f"✓ Revoked all sessions for {email}")
        click.echo(f"  Token version: {old_version} → {admin.token_version}")

    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()


@cli.command()
@click.pass_context
def send_reminders(ctx: click.Context):
    """
    Run the daily certification reminder sweep across all tenants.

    Exits non-zero when any reminder failed, so cron can alert on it.

    Example:
        python -m app.cli send-reminders
    """
    from app.services.certification_reminder_service import CertificationReminderService
    from app.services.email_transport import get_email_transport

    service = CertificationReminderService(SessionLocal, get_email_transport())
    result = service.run_bulk_sweep()

    click.echo(f"✓ Reminder sweep complete: {result.sent} sent")
    click.echo(f"  Selected: {result.selected}")
    click.echo(f"  Errors: {result.errors}")
    click.echo(f"  Skipped: {result.skipped}")
    if result.errors:
        ctx.exit(1)


@cli.command()
@click.option("--achievement-id", required=True, type=click.UUID, help="Certification to remind")
@click.pass_context
def remind(ctx: click.Context, achievement_id: UUID):
    """
    Send a manual reminder for one certification.

    Example:
        python -m app.cli remind --achievement-id 7d0c...
    """
    from app.services.certification_reminder_service import (
        CertificationNotFoundError,
        CertificationReminderService,
        ReminderInProgressError,
        ReminderSendError,
    )
    from app.services.email_transport import get_email_transport

    service = CertificationReminderService(SessionLocal, get_email_transport())
    try:
        outcome = service.send_single_reminder(achievement_id)
    except CertificationNotFoundError:
        click.echo(f"❌ Certification not found: {achievement_id}")
        ctx.exit(1)
    except ReminderInProgressError:
        click.echo("❌ A reminder run is already processing this certification")
        ctx.exit(1)
    except ReminderSendError as e:
        click.echo(f"❌ Reminder failed: {e}")
        ctx.exit(1)
    else:
        click.echo(f"✓ Reminder sent: {outcome.subject}")
        click.echo(f"  Reminders sent: {outcome.reminders_sent}")
        click.echo(f"  Next reminder: {outcome.next_reminder_date or '(none)'}")


if __name__ == "__main__":
    cli()
