# backend/migrate.py
# Schema migrations for the local SQLite store and the hosted Postgres database
#
# Run: python -m backend.migrate                 (local SQLite store)
#      python -m backend.migrate --postgres      (hosted database via DATABASE_URL)
#      python -m backend.migrate --print-sql     (emit hosted DDL for the SQL editor)

import argparse
import sys
from pathlib import Path
from typing import List, Optional

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from backend.config import DATABASE_PATH
from backend.db import get_db_connection, get_engine, init_sqlite_schema, resolve_sqlite_path

# Hosted schema. Aggregates, the pledge quota and update ownership are kept by
# triggers and row-level policies, which also bind clients holding the anon key.
POSTGRES_SCHEMA: List[str] = [
    """
    CREATE TABLE IF NOT EXISTS public.projects (
        id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
        title text NOT NULL CHECK (length(btrim(title)) > 0),
        description text NOT NULL DEFAULT '',
        goal_amount numeric(14, 2) NOT NULL CHECK (goal_amount > 0),
        current_amount numeric(14, 2) NOT NULL DEFAULT 0,
        end_date date NOT NULL,
        backer_count integer NOT NULL DEFAULT 0,
        created_at timestamptz NOT NULL DEFAULT now(),
        user_id uuid NOT NULL REFERENCES auth.users(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS public.pledges (
        id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
        amount numeric(14, 2) NOT NULL CHECK (amount > 0),
        project_id uuid NOT NULL REFERENCES public.projects(id),
        user_id uuid NOT NULL REFERENCES auth.users(id),
        created_at timestamptz NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS public.updates (
        id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
        content text NOT NULL CHECK (length(btrim(content)) > 0),
        project_id uuid NOT NULL REFERENCES public.projects(id),
        user_id uuid NOT NULL REFERENCES auth.users(id),
        created_at timestamptz NOT NULL DEFAULT now()
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_pledges_project_id ON public.pledges(project_id, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_updates_project_id ON public.updates(project_id, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_projects_created_at ON public.projects(created_at)",
    """
    CREATE OR REPLACE FUNCTION public.check_pledge_within_goal() RETURNS trigger
    LANGUAGE plpgsql SECURITY DEFINER SET search_path = public AS $$
    DECLARE
        remaining numeric;
    BEGIN
        SELECT goal_amount - current_amount INTO remaining
        FROM public.projects WHERE id = NEW.project_id FOR UPDATE;
        IF NOT FOUND THEN
            RAISE EXCEPTION 'Project not found' USING ERRCODE = 'P0002';
        END IF;
        IF NEW.amount > remaining THEN
            RAISE EXCEPTION 'The maximum pledge amount available is $%',
                to_char(greatest(remaining, 0), 'FM999999999990.00')
                USING ERRCODE = 'P0001';
        END IF;
        RETURN NEW;
    END
    $$
    """,
    """
    CREATE OR REPLACE FUNCTION public.roll_up_pledge() RETURNS trigger
    LANGUAGE plpgsql SECURITY DEFINER SET search_path = public AS $$
    BEGIN
        UPDATE public.projects
        SET current_amount = current_amount + NEW.amount,
            backer_count = backer_count + CASE WHEN EXISTS (
                SELECT 1 FROM public.pledges
                WHERE project_id = NEW.project_id AND user_id = NEW.user_id AND id <> NEW.id
            ) THEN 0 ELSE 1 END
        WHERE id = NEW.project_id;
        RETURN NEW;
    END
    $$
    """,
    "DROP TRIGGER IF EXISTS pledges_within_goal ON public.pledges",
    """
    CREATE TRIGGER pledges_within_goal BEFORE INSERT ON public.pledges
    FOR EACH ROW EXECUTE FUNCTION public.check_pledge_within_goal()
    """,
    "DROP TRIGGER IF EXISTS pledges_roll_up_totals ON public.pledges",
    """
    CREATE TRIGGER pledges_roll_up_totals AFTER INSERT ON public.pledges
    FOR EACH ROW EXECUTE FUNCTION public.roll_up_pledge()
    """,
    """
    CREATE OR REPLACE FUNCTION public.place_pledge(p_project_id uuid, p_amount numeric)
    RETURNS public.pledges
    LANGUAGE plpgsql SECURITY INVOKER SET search_path = public AS $$
    DECLARE
        new_row public.pledges;
    BEGIN
        IF auth.uid() IS NULL THEN
            RAISE EXCEPTION 'Not authenticated' USING ERRCODE = '42501';
        END IF;
        IF p_amount IS NULL OR p_amount <= 0 THEN
            RAISE EXCEPTION 'Pledge amount must be greater than zero' USING ERRCODE = 'P0001';
        END IF;
        INSERT INTO public.pledges (amount, project_id, user_id)
        VALUES (p_amount, p_project_id, auth.uid())
        RETURNING * INTO new_row;
        RETURN new_row;
    END
    $$
    """,
    "ALTER TABLE public.projects ENABLE ROW LEVEL SECURITY",
    "ALTER TABLE public.pledges ENABLE ROW LEVEL SECURITY",
    "ALTER TABLE public.updates ENABLE ROW LEVEL SECURITY",
    'DROP POLICY IF EXISTS "projects are public" ON public.projects',
    'CREATE POLICY "projects are public" ON public.projects FOR SELECT USING (true)',
    'DROP POLICY IF EXISTS "users create own projects" ON public.projects',
    """
    CREATE POLICY "users create own projects" ON public.projects
    FOR INSERT TO authenticated WITH CHECK (auth.uid() = user_id)
    """,
    'DROP POLICY IF EXISTS "pledges are public" ON public.pledges',
    'CREATE POLICY "pledges are public" ON public.pledges FOR SELECT USING (true)',
    'DROP POLICY IF EXISTS "users pledge as themselves" ON public.pledges',
    """
    CREATE POLICY "users pledge as themselves" ON public.pledges
    FOR INSERT TO authenticated WITH CHECK (auth.uid() = user_id)
    """,
    'DROP POLICY IF EXISTS "updates are public" ON public.updates',
    'CREATE POLICY "updates are public" ON public.updates FOR SELECT USING (true)',
    'DROP POLICY IF EXISTS "owners post updates" ON public.updates',
    """
    CREATE POLICY "owners post updates" ON public.updates
    FOR INSERT TO authenticated WITH CHECK (
        auth.uid() = user_id
        AND auth.uid() = (SELECT p.user_id FROM public.projects p WHERE p.id = project_id)
    )
    """,
]


def postgres_sql() -> str:
    return ";\n".join(s.strip() for s in POSTGRES_SCHEMA) + ";\n"


def run_sqlite_migrations(path: Optional[str] = None) -> None:
    """Create the local store schema (idempotent)."""
    print(f"[MIGRATE] SQLite store: {resolve_sqlite_path(path or DATABASE_PATH)}")
    with get_db_connection(path or DATABASE_PATH) as conn:
        init_sqlite_schema(conn)
    print("[MIGRATE] SQLite migrations complete")


def run_postgres_migrations() -> None:
    """Apply the hosted schema through the direct Postgres connection (DATABASE_URL)."""
    from sqlalchemy import text

    print("[MIGRATE] Running PostgreSQL migrations...")
    engine = get_engine()
    with engine.begin() as conn:
        for statement in POSTGRES_SCHEMA:
            conn.execute(text(statement))
    print("[MIGRATE] PostgreSQL migrations complete")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="CrowdFund schema migrations")
    parser.add_argument("--postgres", action="store_true", help="apply the hosted schema via DATABASE_URL")
    parser.add_argument("--print-sql", action="store_true", help="print the hosted schema and exit")
    parser.add_argument("--database-path", default=None, help="SQLite file (defaults to DATABASE_PATH)")
    args = parser.parse_args(argv)

    if args.print_sql:
        print(postgres_sql())
        return 0
    if args.postgres:
        run_postgres_migrations()
        return 0
    run_sqlite_migrations(args.database_path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
