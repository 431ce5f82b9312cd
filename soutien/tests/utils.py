# soutien/tests/utils.py
from datetime import date, timedelta
from decimal import Decimal

from soutien.models import Eleve, Enseignant, Groupe, GroupeEleve, Paiement, Presence, Seance

TODAY = date(2026, 3, 2)
PREMIERE_SEANCE = date(2026, 1, 5)


class DonneesSoutienMixin:
    """Enseignant + élève + helpers pour fabriquer séances, présences et paiements."""

    def setUp(self):
        super().setUp()
        self.enseignant = Enseignant.objects.create(nom="Ben Ali", prenom="Sami")
        self.eleve = Eleve.objects.create(nom="Trabelsi", prenom="Amine", email="amine@example.com")

    def creer_eleve(self, nom="Jaziri", prenom="Lina", **kwargs):
        return Eleve.objects.create(nom=nom, prenom=prenom, **kwargs)

    def creer_groupe(self, eleves=None, **kwargs):
        data = {"enseignant": self.enseignant, "nom": f"Groupe {Groupe.objects.count() + 1}"}
        data.update(kwargs)
        groupe = Groupe.objects.create(**data)
        for eleve in (eleves if eleves is not None else [self.eleve]):
            GroupeEleve.objects.create(groupe=groupe, eleve=eleve)
        return groupe

    def suivre(self, groupe, n, eleve=None, statut=Presence.PRESENT, statut_seance=Seance.COMPLETED):
        """Crée `n` séances (hebdo) avec une présence de l'élève."""
        eleve = eleve or self.eleve
        deja = groupe.seances.count()
        seances = []
        for i in range(n):
            seance = Seance.objects.create(
                groupe=groupe,
                date=PREMIERE_SEANCE + timedelta(days=7 * (deja + i)),
                statut=statut_seance,
            )
            Presence.objects.create(seance=seance, eleve=eleve, statut=statut)
            seances.append(seance)
        return seances

    def paiement(self, groupe, cycle_index, statut=Paiement.PAID, echeance=None, eleve=None, montant=None):
        return Paiement.objects.create(
            eleve=eleve or self.eleve,
            groupe=groupe,
            enseignant=self.enseignant,
            cycle_index=cycle_index,
            montant=montant or groupe.frais_seance or groupe.frais_mensuel or Decimal("1.00"),
            statut=statut,
            date_echeance=echeance or TODAY + timedelta(days=30),
        )
