# soutien/services/donnees.py
"""
Accès aux données du moteur de paiement (ORM Django).

Le moteur ne lit que :
- les séances TERMINÉES d'un groupe (ordre date puis id)
- les présences PRESENT d'un élève sur ces séances
- la configuration tarifaire du groupe
- les paiements de cycle (élève, groupe) et les totaux de tous les paiements
et n'écrit qu'une chose : un paiement PENDING.
"""
from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from datetime import date as date_cls
from decimal import Decimal
from typing import List, Optional, Set

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import DecimalField, Max, Min, Q, Sum
from django.db.models.functions import Coalesce

from soutien.models import Groupe, Paiement, Presence, Seance

from .erreurs import DataUnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConfigFacturation:
    frais_seance: Optional[Decimal]
    frais_mensuel: Optional[Decimal]
    taille_cycle: Optional[int]
    delai_paiement_jours: int


@dataclass(frozen=True)
class TotauxPaiements:
    """Montants lus sur les paiements enregistrés (tous types, inscription comprise)."""
    total_paye: Decimal
    total_en_attente: Decimal
    total_en_retard: Decimal
    prochaine_echeance: Optional[date_cls]
    dernier_paiement: Optional[date_cls]


def _somme(statut):
    return Coalesce(
        Sum("montant", filter=Q(statut=statut)),
        Decimal("0.00"),
        output_field=DecimalField(max_digits=12, decimal_places=2),
    )


def _lecture(fn):
    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except Groupe.DoesNotExist as e:
            raise DataUnavailableError(f"Groupe introuvable: {e}") from e
        except DatabaseError as e:
            raise DataUnavailableError(f"{fn.__name__}: {e}") from e
    return wrapper


class PaymentStore:

    @_lecture
    def list_completed_sessions(self, groupe_id) -> List[tuple]:
        return list(
            Seance.objects
            .filter(groupe_id=groupe_id, statut=Seance.COMPLETED)
            .order_by("date", "id")
            .values_list("id", "date")
        )

    @_lecture
    def list_present_attendance(self, eleve_id, seance_ids) -> Set[int]:
        if not seance_ids:
            return set()
        return set(
            Presence.objects
            .filter(eleve_id=eleve_id, seance_id__in=list(seance_ids), statut=Presence.PRESENT)
            .values_list("seance_id", flat=True)
        )

    @_lecture
    def get_group_billing_policy(self, groupe_id) -> ConfigFacturation:
        g = Groupe.objects.only(
            "frais_seance", "frais_mensuel", "taille_cycle", "delai_paiement_jours"
        ).get(pk=groupe_id)
        return ConfigFacturation(
            frais_seance=g.frais_seance,
            frais_mensuel=g.frais_mensuel,
            taille_cycle=g.taille_cycle,
            delai_paiement_jours=g.delai_paiement,
        )

    @_lecture
    def list_payments(self, eleve_id, groupe_id) -> List[Paiement]:
        return list(
            Paiement.objects
            .filter(eleve_id=eleve_id, groupe_id=groupe_id, cycle_index__isnull=False)
            .order_by("cycle_index", "id")
        )

    @_lecture
    def payment_totals(self, eleve_id, groupe_id) -> TotauxPaiements:
        agg = Paiement.objects.filter(eleve_id=eleve_id, groupe_id=groupe_id).aggregate(
            paye=_somme(Paiement.PAID),
            en_attente=_somme(Paiement.PENDING),
            en_retard=_somme(Paiement.OVERDUE),
            prochaine=Min("date_echeance", filter=Q(statut__in=[Paiement.PENDING, Paiement.OVERDUE])),
            dernier=Max("date_paiement", filter=Q(statut=Paiement.PAID)),
        )
        return TotauxPaiements(
            total_paye=agg["paye"],
            total_en_attente=agg["en_attente"],
            total_en_retard=agg["en_retard"],
            prochaine_echeance=agg["prochaine"],
            dernier_paiement=agg["dernier"],
        )

    def insert_pending_payment(
        self,
        eleve_id,
        groupe_id,
        montant: Decimal,
        date_echeance: date_cls,
        cycle_index: int,
        enseignant_id=None,
        notes: str = "",
        type_paiement: str = Paiement.MONTHLY_FEE,
    ) -> Optional[Paiement]:
        """
        Insertion unique (eleve, groupe, cycle_index).
        Retourne None si un autre appel a déjà créé le paiement de ce cycle.
        """
        try:
            with transaction.atomic():
                return Paiement.objects.create(
                    eleve_id=eleve_id,
                    groupe_id=groupe_id,
                    enseignant_id=enseignant_id,
                    cycle_index=cycle_index,
                    type_paiement=type_paiement,
                    montant=montant,
                    statut=Paiement.PENDING,
                    date_echeance=date_echeance,
                    notes=notes,
                )
        except IntegrityError:
            logger.info(
                "Paiement déjà créé pour eleve=%s groupe=%s cycle=%s (appel concurrent)",
                eleve_id, groupe_id, cycle_index,
            )
            return None
        except DatabaseError as e:
            raise DataUnavailableError(f"insert_pending_payment: {e}") from e
