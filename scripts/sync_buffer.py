import argparse

from app.config import settings
from app.container import container
from app.db import Base, SessionLocal, get_engine
from app.errors import SyncError
from app.logging import configure_logging
from app.services.buffer_sync.stats import compute_stats


def create_tables() -> None:
    """Create the buffer tables on a local database (the Sage procedure owns them in production)."""
    import app.models  # noqa: F401

    Base.metadata.create_all(get_engine())
    print(f"buffer tables created on {get_engine().url.render_as_string(hide_password=True)}")


def main():
    parser = argparse.ArgumentParser(description="Refresh the Sage buffer tables or print sync statistics.")
    parser.add_argument("command", choices=["stats", "refresh", "create-tables"])
    parser.add_argument(
        "--schema",
        choices=["row_per_due_date", "normalized"],
        default=settings.invoice_schema,
        help="Invoice buffer shape to count from.",
    )
    args = parser.parse_args()
    configure_logging()

    if args.command == "create-tables":
        create_tables()
        return

    db = SessionLocal()
    try:
        if args.command == "refresh":
            stats = container.buffer_refresher(invoice_schema=args.schema).refresh(db)
        else:
            stats = compute_stats(db, args.schema)
        print(stats.model_dump_json(indent=2))
    except SyncError as exc:
        print(f"error: {exc.message}: {exc.detail}")
        raise SystemExit(1) from exc
    finally:
        db.close()


if __name__ == "__main__":
    main()
