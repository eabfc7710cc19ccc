#!/usr/bin/env python3
"""Create the clients table used by the supabase client store."""

import os
import psycopg2
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")
CLIENTS_TABLE = os.getenv("SUPABASE_CLIENTS_TABLE", "clients")

SQL = f"""
CREATE TABLE IF NOT EXISTS {CLIENTS_TABLE} (
    id VARCHAR(255) PRIMARY KEY,
    name VARCHAR(255),
    status VARCHAR(100),
    utm_source VARCHAR(255),
    utm_campaign VARCHAR(255),
    utm_fb_pixel VARCHAR(100),
    utm_fb_token TEXT,
    ip VARCHAR(64),
    user_agent TEXT,
    fbclid VARCHAR(512),
    last_activity TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_{CLIENTS_TABLE}_last_activity ON {CLIENTS_TABLE}(last_activity DESC);
"""


def main():
    if not DATABASE_URL:
        raise SystemExit("DATABASE_URL is not set")
    print("Connecting to database...")
    conn = psycopg2.connect(DATABASE_URL)
    conn.autocommit = True
    cur = conn.cursor()

    print(f"Creating table {CLIENTS_TABLE}...")
    cur.execute(SQL)

    cur.execute(
        "SELECT column_name FROM information_schema.columns WHERE table_name = %s ORDER BY ordinal_position;",
        (CLIENTS_TABLE,),
    )
    columns = cur.fetchall()
    print(f"Columns: {[c[0] for c in columns]}")

    cur.close()
    conn.close()
    print("\nDone!")

if __name__ == "__main__":
    main()
