# soutien/services/statut.py
"""
Statut de paiement d'un élève dans un groupe.

Facturation à l'usage : chaque cycle de séances suivies (PRESENT, séances
TERMINÉES) doit être couvert par un paiement PAID.
- A_JOUR     : aucun cycle bouclé non réglé
- EN_ATTENTE : paiement(s) PENDING dont l'échéance n'est pas dépassée
- EN_RETARD  : cycle bouclé sans paiement, paiement OVERDUE, ou échéance dépassée

Lecture seule : rien n'est écrit ici (voir generation.py / retards.py).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date as date_cls
from decimal import Decimal
from typing import Optional

from django.db import models
from django.utils import timezone

from soutien.models import Paiement

from .cycles import accumulate_cycles
from .donnees import PaymentStore
from .erreurs import DataUnavailableError
from .registre import RegistrePaiements
from .tarifs import resolve_fee_policy

logger = logging.getLogger(__name__)


class StatutCompte(models.TextChoices):
    # ordre de déclaration = priorité (du meilleur au pire)
    A_JOUR = "A_JOUR", "À jour"
    EN_ATTENTE = "EN_ATTENTE", "En attente"
    EN_RETARD = "EN_RETARD", "En retard"

    @property
    def priorite(self) -> int:
        return list(type(self)).index(self)

    @classmethod
    def pire(cls, statuts) -> "StatutCompte":
        return max((cls(s) for s in statuts), key=lambda s: s.priorite, default=cls.A_JOUR)


@dataclass(frozen=True)
class EtatPaiement:
    eleve_id: int
    groupe_id: int
    statut: StatutCompte
    montant_du: Decimal
    seances_suivies: int
    seances_par_cycle: int
    prochaine_echeance: Optional[date_cls] = None
    cycles_completes: int = 0

    @classmethod
    def par_defaut(cls, eleve_id, groupe_id, statut=StatutCompte.EN_ATTENTE):
        return cls(
            eleve_id=eleve_id,
            groupe_id=groupe_id,
            statut=statut,
            montant_du=Decimal("0.00"),
            seances_suivies=0,
            seances_par_cycle=0,
        )

    def as_dict(self) -> dict:
        return {
            "student_id": self.eleve_id,
            "group_id": self.groupe_id,
            "current_status": self.statut.value,
            "amount_due": self.montant_du,
            "attended_sessions": self.seances_suivies,
            "total_sessions_in_cycle": self.seances_par_cycle,
            "next_due_date": self.prochaine_echeance,
        }


def progression_eleve(store: PaymentStore, eleve_id, groupe_id, taille_cycle: int):
    """Séances suivies (PRESENT, séances TERMINÉES) découpées en cycles."""
    seances = store.list_completed_sessions(groupe_id)
    presents = store.list_present_attendance(eleve_id, [sid for sid, _ in seances])
    try:
        return accumulate_cycles([d for sid, d in seances if sid in presents], taille_cycle)
    except ValueError as e:
        # historique incohérent renvoyé par le store
        raise DataUnavailableError(f"Séances du groupe {groupe_id}: {e}") from e


def _est_en_retard(paiement, today: date_cls) -> bool:
    if paiement is None:
        return True
    if paiement.statut == Paiement.OVERDUE:
        return True
    return paiement.est_echu(today)


def calculate_student_payment_status(
    eleve_id,
    groupe_id,
    today: date_cls = None,
    store: PaymentStore = None,
) -> EtatPaiement:
    today = today or timezone.localdate()
    store = store or PaymentStore()

    # 1) politique tarifaire
    config = store.get_group_billing_policy(groupe_id)
    politique = resolve_fee_policy(config.frais_seance, config.frais_mensuel, config.taille_cycle)
    taille = politique.taille_cycle

    if not politique.est_facturable:
        logger.warning("Configuration de paiement manquante pour le groupe %s", groupe_id)
        return EtatPaiement(
            eleve_id=eleve_id,
            groupe_id=groupe_id,
            statut=StatutCompte.A_JOUR,
            montant_du=Decimal("0.00"),
            seances_suivies=0,
            seances_par_cycle=taille,
        )

    # 2) présences -> cycles
    progression = progression_eleve(store, eleve_id, groupe_id, taille)
    cycles = progression.cycles_completes

    if cycles == 0:
        return EtatPaiement(
            eleve_id=eleve_id,
            groupe_id=groupe_id,
            statut=StatutCompte.A_JOUR,
            montant_du=Decimal("0.00"),
            seances_suivies=progression.seances_cycle_courant,
            seances_par_cycle=taille,
        )

    # 3) registre des paiements
    registre = RegistrePaiements(store.list_payments(eleve_id, groupe_id))
    non_regles = registre.unsettled_cycles(cycles)

    if not non_regles:
        return EtatPaiement(
            eleve_id=eleve_id,
            groupe_id=groupe_id,
            statut=StatutCompte.A_JOUR,
            montant_du=Decimal("0.00"),
            seances_suivies=progression.seances_affichees,
            seances_par_cycle=taille,
            cycles_completes=cycles,
        )

    # montant dû = tous les cycles bouclés non réglés (pas seulement le dernier)
    montant_du = politique.montant_par_cycle * len(non_regles)
    paiements = [registre.payment_covering_cycle(i) for i in non_regles]
    echeances = [p.date_echeance for p in paiements if p is not None and p.statut == Paiement.PENDING]
    prochaine = min(echeances) if echeances else None

    if any(_est_en_retard(p, today) for p in paiements):
        statut = StatutCompte.EN_RETARD
        suivies = progression.seances_cycle_courant
    else:
        # cycle en attente déjà bouclé => affiché complet
        statut = StatutCompte.EN_ATTENTE
        suivies = taille

    logger.debug(
        "Statut eleve=%s groupe=%s: %s (cycles=%s, non réglés=%s, dû=%s)",
        eleve_id, groupe_id, statut, cycles, len(non_regles), montant_du,
    )

    return EtatPaiement(
        eleve_id=eleve_id,
        groupe_id=groupe_id,
        statut=statut,
        montant_du=montant_du,
        seances_suivies=suivies,
        seances_par_cycle=taille,
        prochaine_echeance=prochaine,
        cycles_completes=cycles,
    )
