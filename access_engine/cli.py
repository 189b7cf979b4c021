"""Access Engine CLI tool (accessctl)."""

from datetime import timedelta

import typer

app = typer.Typer(name="accessctl", help="Access Engine CLI")
db_app = typer.Typer(help="Database management commands")
roles_app = typer.Typer(help="Role inspection commands")
users_app = typer.Typer(help="User access commands")
app.add_typer(db_app, name="db")
app.add_typer(roles_app, name="roles")
app.add_typer(users_app, name="users")


@db_app.command("init")
def db_init():
    """Create all tables that don't exist yet."""
    from access_engine.db.base import Base
    from access_engine.db.session import engine
    import access_engine.models  # noqa: F401  (registers tables)

    Base.metadata.create_all(bind=engine)
    typer.echo("Tables created")


@db_app.command("seed")
def db_seed():
    """Seed the permission catalog, system roles and the super-admin user."""
    from access_engine.db.session import SessionLocal
    from access_engine.db.seeds.seed_permissions import seed_permissions
    from access_engine.db.seeds.seed_roles import seed_roles
    from access_engine.db.seeds.seed_super_admin import seed_super_admin
    from access_engine.services.cache_service import cache_service

    db = SessionLocal()
    try:
        perms = seed_permissions(db)
        roles = seed_roles(db)
        admin = seed_super_admin(db)
        cache_service.invalidate_all_permissions()
        typer.echo(f"Seeded {perms} permissions, {roles} roles")
        if admin is not None:
            typer.echo(f"Super admin user id: {admin.id}")
    finally:
        db.close()


@app.command("permissions")
def list_permissions():
    """List the permission catalog grouped by resource."""
    from access_engine.db.session import SessionLocal
    from access_engine.services.permission_service import PermissionCatalog

    db = SessionLocal()
    try:
        for resource, perms in PermissionCatalog(db).group_by_resource().items():
            typer.echo(resource)
            for p in perms:
                typer.echo(f"  {p.key:<32} {p.description or ''}")
    finally:
        db.close()


@roles_app.command("list")
def list_roles():
    """List roles, highest priority first."""
    from access_engine.db.session import SessionLocal
    from access_engine.services.role_service import RoleService

    db = SessionLocal()
    try:
        for role in RoleService(db).list_all():
            marker = " [system]" if role.is_system_role else ""
            typer.echo(f"  [{role.priority:>3}] {role.name}{marker} ({len(role.permissions)} permissions)")
    finally:
        db.close()


@users_app.command("permissions")
def user_permissions(
    user_id: str = typer.Argument(..., help="User ID"),
):
    """Print a user's effective permissions."""
    from access_engine.db.session import SessionLocal
    from access_engine.services.authorization_service import AuthorizationService

    db = SessionLocal()
    try:
        for key in sorted(AuthorizationService(db).resolve_effective_permissions(user_id)):
            typer.echo(key)
    finally:
        db.close()


@users_app.command("check")
def user_check(
    user_id: str = typer.Argument(..., help="User ID"),
    resource: str = typer.Argument(..., help="Resource, e.g. bookings"),
    action: str = typer.Argument(..., help="Action, e.g. read"),
):
    """Check one permission; exits 1 when denied, 2 when it is not in the catalog."""
    from access_engine.db.session import SessionLocal
    from access_engine.services.authorization_service import AuthorizationService
    from access_engine.services.permission_service import PermissionCatalog

    db = SessionLocal()
    try:
        if PermissionCatalog(db).get_by_key(resource, action) is None:
            typer.echo(f"Unknown permission {resource}:{action}", err=True)
            raise typer.Exit(code=2)
        allowed = AuthorizationService(db).has_permission(user_id, resource, action)
    finally:
        db.close()
    typer.echo(f"{resource}:{action} {'allowed' if allowed else 'denied'}")
    if not allowed:
        raise typer.Exit(code=1)


@app.command("purge-overrides")
def purge_overrides():
    """Delete expired permission overrides."""
    from access_engine.db.session import SessionLocal
    from access_engine.services.override_service import OverrideService

    db = SessionLocal()
    try:
        removed = OverrideService(db).purge_expired()
    finally:
        db.close()
    typer.echo(f"Purged {removed} expired overrides")


@app.command("token")
def issue_token(
    user_id: str = typer.Argument(..., help="User ID to issue the token for"),
    minutes: int = typer.Option(60, help="Token lifetime in minutes"),
):
    """Issue a bearer token for local testing."""
    from access_engine.core.security import create_access_token

    typer.echo(create_access_token({"sub": user_id}, timedelta(minutes=minutes)))


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Host"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(False, help="Auto-reload"),
):
    """Start the API server."""
    import uvicorn
    uvicorn.run("access_engine.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
