from django.core.management.base import BaseCommand, CommandError

from soutien.models import Groupe, Paiement
from soutien.services.relances import record_reminder, reminder_candidates


class Command(BaseCommand):
    help = "Enregistre les relances des paiements en attente / en retard (l'envoi réel est externe)."

    def add_arguments(self, parser):
        parser.add_argument("--groupe", type=int, help="ID d'un groupe (sinon tous)")
        parser.add_argument("--canal", default="AVIS", choices=["AVIS", "SMS", "EMAIL"])
        parser.add_argument("--dry-run", action="store_true", help="Liste sans enregistrer")

    def handle(self, *args, **options):
        groupe = None
        if options.get("groupe"):
            try:
                groupe = Groupe.objects.get(pk=options["groupe"])
            except Groupe.DoesNotExist:
                raise CommandError(f"Groupe introuvable: {options['groupe']}")

        rappels = reminder_candidates(groupe=groupe)

        created = 0
        for r in rappels:
            self.stdout.write(f"- {r.student_name} ({r.contact or 'sans contact'}) : {r.amount} DT, échéance {r.due_date}")
            if options["dry_run"]:
                continue
            record_reminder(Paiement.objects.select_related("groupe").get(pk=r.paiement_id), canal=options["canal"])
            created += 1

        self.stdout.write(self.style.SUCCESS(f"Relances créées: {created}"))
