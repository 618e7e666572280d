"""
Database initialization script.
Creates all tables for the journal models.
"""
from sqlalchemy import inspect
from journal.models.base import Base, engine
# CRITICAL: Import all models to register them
from journal.models.users import User
from journal.models.positions import Position, Operation

def init_database():
    """
    Initialize database with all tables.
    Steps:
    1. Create all tables from SQLAlchemy models
    2. Verify
    """
    print("Trade Journal - Database Initialization")
    print("=" * 50)

    # Step 1: Create all tables
    print("\n1. Creating all tables...")
    try:
        Base.metadata.create_all(bind=engine)
        print("  ✓ All tables created")
    except Exception as e:
        print(f"  ✗ Error creating tables: {e}")
        return

    # Step 2: Verify
    print("\n2. Verifying tables...")
    tables = inspect(engine).get_table_names()
    print(f"  ✓ Found {len(tables)} tables:")
    for table in tables:
        print(f"    - {table}")

    print("\n" + "=" * 50)
    print("✅ Database initialization complete!")
    print("\nNext steps:")
    print("1. Create a user: python -m scripts.create_user you@example.com")
    print("2. Access API: http://localhost:8000/docs")
    print("3. Access Dashboard: http://localhost:8501")

if __name__ == "__main__":
    init_database()
