# soutien/services/relances.py
"""
Éligibilité aux relances.

On ne fait que classer (qui relancer, combien, pour quand) et tracer la
relance ; l'envoi réel (SMS / email) est hors de ce module.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date as date_cls, timedelta
from decimal import Decimal
from typing import List

from django.conf import settings
from django.utils import timezone

from soutien.models import Paiement, RelancePaiement

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RappelEligible:
    paiement_id: int
    student_name: str
    contact: str
    amount: Decimal
    due_date: date_cls
    status: str

    def as_dict(self) -> dict:
        return {
            "payment_id": self.paiement_id,
            "student_name": self.student_name,
            "contact_info": self.contact,
            "amount": self.amount,
            "due_date": self.due_date,
            "status": self.status,
        }


def _intervalle_jours() -> int:
    return int(getattr(settings, "PAIEMENTS_RELANCE_INTERVALLE_JOURS", 1))


def reminder_candidates(groupe=None, enseignant=None) -> List[RappelEligible]:
    """
    Paiements PENDING / OVERDUE à relancer.
    ✅ anti-spam : pas de nouvelle relance si la dernière date de moins de
       PAIEMENTS_RELANCE_INTERVALLE_JOURS jours (0 = pas de limite).
    """
    qs = (
        Paiement.objects
        .filter(statut__in=[Paiement.PENDING, Paiement.OVERDUE])
        .select_related("eleve", "groupe")
        .order_by("date_echeance", "id")
    )
    if groupe is not None:
        qs = qs.filter(groupe=groupe)
    if enseignant is not None:
        qs = qs.filter(groupe__enseignant=enseignant)

    intervalle = _intervalle_jours()
    if intervalle > 0:
        seuil = timezone.now() - timedelta(days=intervalle)
        qs = qs.exclude(relances__sent_at__gte=seuil)

    return [
        RappelEligible(
            paiement_id=p.pk,
            student_name=p.eleve.nom_complet,
            contact=p.eleve.contact,
            amount=p.montant,
            due_date=p.date_echeance,
            status=p.statut,
        )
        for p in qs
    ]


def record_reminder(paiement: Paiement, canal: str = "AVIS", message: str = "") -> RelancePaiement:
    if not message:
        message = (
            f"Rappel : {paiement.montant} DT pour {paiement.groupe.nom} "
            f"(échéance {paiement.date_echeance:%d/%m/%Y})"
        )
    relance = RelancePaiement.objects.create(paiement=paiement, canal=canal, message=message[:255])
    logger.info("Relance %s enregistrée pour le paiement %s", canal, paiement.pk)
    return relance
