"""Release expired reservations and stale pending claims on demand."""

from django.core.management.base import BaseCommand, CommandError  # type: ignore

from apps.sponsorships.services.engine import engine


class Command(BaseCommand):
    help = "Expire unconfirmed reservations and cancel stale pending claims"

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Only report what would be released",
        )
        parser.add_argument(
            "--claims-only",
            action="store_true",
            help="Sweep pending claims only",
        )
        parser.add_argument(
            "--reservations-only",
            action="store_true",
            help="Sweep reservations only",
        )
        parser.add_argument(
            "--timeout-hours",
            type=float,
            default=None,
            help="Pending claim timeout (defaults to CLAIM_PENDING_TIMEOUT_HOURS)",
        )

    def handle(self, *args, **options):
        if options["claims_only"] and options["reservations_only"]:
            raise CommandError("--claims-only and --reservations-only are mutually exclusive")
        timeout = options["timeout_hours"]
        if timeout is not None and timeout <= 0:
            raise CommandError("--timeout-hours must be positive")

        dry_run = options["dry_run"]
        if dry_run:
            self.stdout.write(self.style.WARNING("Dry run: nothing will be changed"))

        failed = False
        if not options["claims_only"]:
            report = engine.sweep_expired_reservations(dry_run=dry_run)
            verb = "Would expire" if dry_run else "Expired"
            self.stdout.write(
                f"{verb} {report.closed_count} reservations, "
                f"released {report.released_count} children"
            )
            failed |= self._errors(report.errors)

        if not options["reservations_only"]:
            report = engine.release_stale_pending(timeout_hours=timeout, dry_run=dry_run)
            verb = "Would cancel" if dry_run else "Cancelled"
            self.stdout.write(
                f"{verb} {report.closed_count} stale claims, "
                f"released {report.released_count} children"
            )
            failed |= self._errors(report.errors)

        if failed:
            raise CommandError("Sweep finished with errors")
        self.stdout.write(self.style.SUCCESS("Sweep complete"))

    def _errors(self, errors) -> bool:
        for error in errors:
            self.stderr.write(self.style.ERROR(error))
        return bool(errors)
