from django.core.management.base import BaseCommand, CommandError

from soutien.models import Groupe
from soutien.services.agregats import generate_group_payments


class Command(BaseCommand):
    help = "Crée les paiements EN ATTENTE pour les cycles de séances bouclés (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument("--groupe", type=int, help="ID d'un groupe (sinon tous les groupes actifs)")

    def handle(self, *args, **options):
        groupes = Groupe.objects.filter(is_active=True)
        if options.get("groupe"):
            groupes = groupes.filter(pk=options["groupe"])
            if not groupes.exists():
                raise CommandError(f"Groupe introuvable ou inactif: {options['groupe']}")

        total = 0
        for groupe in groupes:
            total += generate_group_payments(groupe)

        self.stdout.write(self.style.SUCCESS(f"Paiements générés: {total}"))
