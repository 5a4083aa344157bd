#!/usr/bin/env python3
"""
Database initialization script for PinQuiz
Writes the schema SQL (tables, unique indexes, row level security, realtime
publication) and checks the Supabase connection.
"""

import asyncio
import sys

from pinquiz.database import check_supabase_connection
from pinquiz.schema import render_schema

SQL_FILE = "create_tables.sql"

def write_schema(path: str = SQL_FILE) -> str:
    sql = render_schema()
    with open(path, "w", encoding="utf-8") as f:
        f.write(sql)
    return path

def init_supabase():
    """Write the schema file and test the Supabase connection"""
    path = write_schema()
    print(f"📄 SQL file created: {path}")

    print("🔄 Testing Supabase connection...")
    if asyncio.run(check_supabase_connection()):
        print("✅ Supabase connection successful!")
    else:
        print("⚠️  Supabase connection failed")
        print("\n💡 Troubleshooting:")
        print("1. Check your .env file has correct Supabase credentials")
        print("2. Make sure SUPABASE_URL and SUPABASE_*_KEY are set")
        print("3. Verify your Supabase project is active")
        return False

    print("\n📋 Next steps:")
    print("1. Open the SQL Editor in your Supabase dashboard")
    print(f"2. Paste the contents of '{path}' and run it")
    print("\n📊 Tables: quizzes, questions, options, game_sessions, game_players, game_answers")
    return True

if __name__ == "__main__":
    sys.exit(0 if init_supabase() else 1)
