"""
Release phase: migrate the schema to head, then seed roles and the admin account.

Runs before every deploy (scripts/start.py calls it). Both steps are
idempotent; seeding never overwrites an existing password.

    python scripts/release.py [--no-seed]
"""
from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def release_database_url() -> str:
    db_url = (os.environ.get("DATABASE_URL") or "").strip()
    if not db_url:
        raise RuntimeError("Missing required environment variable DATABASE_URL.")
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and db_url.startswith("sqlite"):
        raise RuntimeError("Refusing to run release on sqlite DATABASE_URL in production. Set DATABASE_URL to Postgres.")
    return db_url


def migrate(db_url: str) -> None:
    from alembic import command
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    command.upgrade(cfg, "head")


def run_release(*, seed: bool = True) -> None:
    db_url = release_database_url()
    print("[release] alembic upgrade head", flush=True)
    migrate(db_url)
    if seed:
        print("[release] seeding permissions, sales roles, admin", flush=True)
        from scripts import init_db

        init_db.seed_only(database_url=db_url)
    print("[release] done", flush=True)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--no-seed", action="store_true", help="migrate only")
    args = parser.parse_args(argv)
    run_release(seed=not args.no_seed)


if __name__ == "__main__":
    main()
