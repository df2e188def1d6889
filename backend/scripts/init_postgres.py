"""
Check that the PostgreSQL database for AuthCore is reachable.
Run once before migrating: python scripts/init_postgres.py

Requires: PostgreSQL installed and running. Create user and database:

  sudo -u postgres psql
  CREATE USER authcore WITH PASSWORD 'authcore';
  CREATE DATABASE authcore_db OWNER authcore;
  GRANT ALL PRIVILEGES ON DATABASE authcore_db TO authcore;
  \q

Then apply the schema: alembic upgrade head
"""

import sys

from sqlalchemy import create_engine, text
from authcore.config import settings


def main():
    url = settings.get_database_url()
    if not url.startswith("postgresql"):
        print("Database URL is not PostgreSQL. Skipping.")
        return
    try:
        engine = create_engine(url)
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("PostgreSQL connection OK. Database exists.")
    except Exception as e:
        print(f"Cannot connect to PostgreSQL: {e}")
        print("\nCreate database first:")
        print("  psql -U postgres -c \"CREATE USER authcore WITH PASSWORD 'authcore';\"")
        print("  psql -U postgres -c \"CREATE DATABASE authcore_db OWNER authcore;\"")
        print("  psql -U postgres -c \"GRANT ALL PRIVILEGES ON DATABASE authcore_db TO authcore;\"")
        sys.exit(1)


if __name__ == "__main__":
    main()
