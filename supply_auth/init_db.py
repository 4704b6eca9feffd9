"""Database initialization script with a demo account."""

from supply_auth.database import Base, get_engine, get_session_factory
from supply_auth.models import Account
from supply_auth.services.auth import PasswordHasher
from supply_auth.services.repositories import SqlAccountStore
from supply_auth.timeutils import utcnow

DEMO_EMAIL = "demo.nurse@example.com"
DEMO_PASSWORD = "Password123!"


def create_tables():
    """Create all database tables."""
    print("Creating database tables...")
    Base.metadata.create_all(bind=get_engine())
    print("Tables created successfully!")


def seed_data(store: SqlAccountStore):
    """Create a password account for local testing."""
    print("\nCreating demo account...")
    account = store.create_account(
        email=DEMO_EMAIL,
        password_hash=PasswordHasher.hash_password(DEMO_PASSWORD),
        name="Demo Nurse",
        email_verified=True,
        preferred_auth_method="jwt",
        now=utcnow(),
    )
    print("Seed data created successfully!")
    print(f"  Account: {account.email}")


def init_db():
    """Initialize database with tables and a demo account."""
    print("Initializing database...")

    create_tables()

    db = get_session_factory()()
    try:
        existing_accounts = db.query(Account).count()
        store = SqlAccountStore(db)
        purged = store.delete_expired_two_factor_tokens(utcnow())
        if purged:
            print(f"Removed {purged} expired one-time codes.")

        if existing_accounts > 0:
            print(f"\nDatabase already has {existing_accounts} accounts. Skipping seed data.")
            return

        seed_data(store)
        print("\nDatabase initialization complete!")

    except Exception as e:
        print(f"\nError during database initialization: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    init_db()
