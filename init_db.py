"""Print (and sanity-check) the Supabase schema for the mock test blob table."""
from mocktest.config import Settings
from mocktest.storage import SCHEMA_SQL, supabase_client

settings = Settings.from_env()
schema = SCHEMA_SQL.format(table=settings.blob_table)

print("Initializing Supabase schema...")
print(f"URL: {settings.supabase_url}")
print(f"Table: {settings.blob_table}")

try:
    client = supabase_client(settings)
    client.table(settings.blob_table).select("key").limit(1).execute()
    print("\n✓ Table already exists and is reachable")
except ValueError as e:
    print(f"Error: {e}")
except Exception as e:
    print(f"Table not reachable yet: {e}")
    print("\nNote: Due to Supabase client limitations, run this SQL in Supabase SQL Editor:")
    print(schema)
    print("Go to: https://app.supabase.com > SQL Editor > New Query")
    print("Paste the SQL above and run it")
