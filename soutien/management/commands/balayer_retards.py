from django.core.management.base import BaseCommand

from soutien.services.retards import mark_overdue_payments


class Command(BaseCommand):
    help = "Passe en OVERDUE les paiements EN ATTENTE dont l'échéance est dépassée."

    def handle(self, *args, **options):
        n = mark_overdue_payments()
        self.stdout.write(self.style.SUCCESS(f"Paiements passés en retard: {n}"))
