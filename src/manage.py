"""Checkout service management CLI.

Schema management plus the scheduled jobs, meant to be run from cron or a
Kubernetes CronJob.

Usage:
    python src/manage.py setup-db              # Create tables (relational providers)
    python src/manage.py drop-db               # Drop tables
    python src/manage.py cleanup-carts         # Expire stale carts, purge old ones
    python src/manage.py auto-cancel-orders    # Cancel orders pending too long
    python src/manage.py reconcile-orders      # Retry cart conversions and stock releases
"""

import argparse
import sys


def _domain():
    from ordering.domain import ordering

    ordering.init()
    return ordering


def setup_databases():
    from ordering.utils.db import setup_db

    handled = setup_db(_domain())
    print(f"Schema ready for providers: {', '.join(handled) or 'none (in-memory only)'}")


def drop_databases():
    from ordering.utils.db import drop_db

    handled = drop_db(_domain())
    print(f"Schema dropped for providers: {', '.join(handled) or 'none (in-memory only)'}")


def run_job(command_cls, **kwargs):
    ordering = _domain()
    with ordering.domain_context():
        return ordering.process(command_cls(**kwargs), asynchronous=False)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Checkout service management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    cleanup_parser = subparsers.add_parser("cleanup-carts", help="Expire stale carts and purge closed ones")
    cleanup_parser.add_argument("--retention-days", type=int, default=None)

    cancel_parser = subparsers.add_parser("auto-cancel-orders", help="Cancel orders pending beyond the timeout")
    cancel_parser.add_argument("--timeout-hours", type=int, default=None)

    subparsers.add_parser("reconcile-orders", help="Retry failed cart conversions and stock releases")

    args = parser.parse_args(argv)

    from ordering.utils.logging import configure_logging

    configure_logging()

    if args.command == "setup-db":
        setup_databases()
    elif args.command == "drop-db":
        drop_databases()
    elif args.command == "cleanup-carts":
        from ordering.cart.cleanup import CleanupExpiredCarts

        result = run_job(CleanupExpiredCarts, retention_days=args.retention_days)
        print(f"Expired {result['expired']} cart(s), deleted {result['deleted']} cart(s)")
    elif args.command == "auto-cancel-orders":
        from ordering.order.automation import ProcessAutomaticStatusUpdates

        count = run_job(ProcessAutomaticStatusUpdates, timeout_hours=args.timeout_hours)
        print(f"Auto-cancelled {count} order(s)")
    elif args.command == "reconcile-orders":
        from ordering.order.reconciliation import ReconcileOrders

        result = run_job(ReconcileOrders)
        print(
            f"Recorded {result['cart_conversions']} cart conversion(s), "
            f"released stock for {result['stock_releases']} order(s)"
        )
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
