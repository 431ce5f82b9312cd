# soutien/services/agregats.py
"""
Agrégations (tableau de bord, stats groupe / globales, génération en lot).

Chaque calcul élève est indépendant : on les lance en "fan-out" (map, ou
`executor.map` si un pool est fourni) puis on replie des résultats
immuables. Aucun compteur partagé.
"""
from __future__ import annotations

import functools
import logging
import operator
import threading
from dataclasses import dataclass, field
from datetime import date as date_cls
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Tuple

from django.db import connections
from django.db.models import DecimalField, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from soutien.models import Groupe, GroupeEleve, Paiement

from .donnees import PaymentStore
from .erreurs import DataUnavailableError
from .generation import create_pending_payment_if_needed
from .statut import EtatPaiement, StatutCompte, calculate_student_payment_status

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def _fermer_connexions_du_thread(fn):
    """
    Chaque thread du pool ouvre ses propres connexions Django : on les ferme
    après chaque tâche. Rien à fermer dans le thread appelant (transaction en cours).
    """
    appelant = threading.get_ident()

    @functools.wraps(fn)
    def wrapper(item):
        try:
            return fn(item)
        finally:
            if threading.get_ident() != appelant:
                connections.close_all()
    return wrapper


def _fan_out(fn, items, executor=None) -> list:
    if executor is None:
        return list(map(fn, items))
    return list(executor.map(_fermer_connexions_du_thread(fn), items))


def _safe_status(eleve_id, groupe_id, today, store=None) -> EtatPaiement:
    try:
        return calculate_student_payment_status(eleve_id, groupe_id, today=today, store=store)
    except DataUnavailableError:
        logger.exception("Erreur calcul statut eleve=%s groupe=%s", eleve_id, groupe_id)
        return EtatPaiement.par_defaut(eleve_id, groupe_id)


# =========================================================
# Élève : statut global sur plusieurs groupes
# =========================================================
@dataclass(frozen=True)
class StatutGlobalEleve:
    eleve_id: int
    etats: Tuple[EtatPaiement, ...]
    statut: StatutCompte
    montant_total: Decimal

    def as_dict(self) -> dict:
        return {
            "student_id": self.eleve_id,
            "payment_statuses": [e.as_dict() for e in self.etats],
            "overall_status": self.statut.value,
            "total_amount_due": self.montant_total,
        }


def student_overall_status(eleve_id, groupe_ids=None, today: date_cls = None, executor=None, store=None) -> StatutGlobalEleve:
    today = today or timezone.localdate()
    if groupe_ids is None:
        groupe_ids = list(
            GroupeEleve.objects
            .filter(eleve_id=eleve_id, is_active=True, groupe__is_active=True)
            .values_list("groupe_id", flat=True)
        )

    etats = tuple(_fan_out(lambda gid: _safe_status(eleve_id, gid, today, store), groupe_ids, executor))
    return StatutGlobalEleve(
        eleve_id=eleve_id,
        etats=etats,
        statut=StatutCompte.pire(e.statut for e in etats),
        montant_total=sum((e.montant_du for e in etats), ZERO),
    )


# =========================================================
# Cumul par statut (pliable)
# =========================================================
@dataclass(frozen=True)
class CumulStatuts:
    a_jour: int = 0
    en_attente: int = 0
    en_retard: int = 0
    montant_en_attente: Decimal = ZERO
    montant_en_retard: Decimal = ZERO

    @classmethod
    def depuis_etat(cls, etat: EtatPaiement) -> "CumulStatuts":
        if etat.statut == StatutCompte.EN_RETARD:
            return cls(en_retard=1, montant_en_retard=etat.montant_du)
        if etat.statut == StatutCompte.EN_ATTENTE:
            return cls(en_attente=1, montant_en_attente=etat.montant_du)
        return cls(a_jour=1)

    def __add__(self, other: "CumulStatuts") -> "CumulStatuts":
        return CumulStatuts(
            a_jour=self.a_jour + other.a_jour,
            en_attente=self.en_attente + other.en_attente,
            en_retard=self.en_retard + other.en_retard,
            montant_en_attente=self.montant_en_attente + other.montant_en_attente,
            montant_en_retard=self.montant_en_retard + other.montant_en_retard,
        )


# =========================================================
# Stats groupe
# =========================================================
PERIODES = ("month", "quarter", "year")


def debut_periode(periode: str, today: date_cls) -> date_cls:
    """Premier jour du mois / trimestre / année contenant `today`."""
    if periode == "month":
        return today.replace(day=1)
    if periode == "quarter":
        return date_cls(today.year, (today.month - 1) // 3 * 3 + 1, 1)
    if periode == "year":
        return date_cls(today.year, 1, 1)
    raise ValueError(f"Période inconnue: {periode!r} (attendu: {', '.join(PERIODES)})")


def calcul_taux_recouvrement(revenu: Decimal, cumul: CumulStatuts) -> Decimal:
    """Encaissé / (encaissé + en attente + en retard), en %, 2 décimales."""
    attendu = revenu + cumul.montant_en_attente + cumul.montant_en_retard
    if attendu <= 0:
        return ZERO
    return (revenu * 100 / attendu).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class StatsGroupe:
    groupe_id: Optional[int]
    groupe_nom: str
    revenu_total: Decimal
    cumul: CumulStatuts
    total_eleves: int
    etats: Tuple[EtatPaiement, ...] = field(default=(), repr=False)
    periode: Optional[str] = None

    @property
    def taux_recouvrement(self) -> Decimal:
        return calcul_taux_recouvrement(self.revenu_total, self.cumul)

    def as_dict(self) -> dict:
        return {
            "group_id": self.groupe_id,
            "group_name": self.groupe_nom,
            "total_revenue": self.revenu_total,
            "pending_amount": self.cumul.montant_en_attente,
            "overdue_amount": self.cumul.montant_en_retard,
            "collection_rate": self.taux_recouvrement,
            "students_up_to_date": self.cumul.a_jour,
            "students_pending": self.cumul.en_attente,
            "students_overdue": self.cumul.en_retard,
            "total_students": self.total_eleves,
            "period": self.periode,
        }


def _revenu(qs) -> Decimal:
    return qs.filter(statut=Paiement.PAID).aggregate(
        total=Coalesce(Sum("montant"), ZERO, output_field=DecimalField(max_digits=12, decimal_places=2))
    )["total"]


def _membres_actifs(groupe: Groupe) -> List[int]:
    return list(
        groupe.membres
        .filter(is_active=True)
        .values_list("eleve_id", flat=True)
    )


def group_payment_stats(
    groupe: Groupe,
    today: date_cls = None,
    executor=None,
    store=None,
    periode: Optional[str] = None,
) -> StatsGroupe:
    """
    `periode` ("month" / "quarter" / "year") ne borne que le revenu encaissé
    (paiements créés depuis le début de la période). Les montants dus restent
    ceux du calcul de statut.
    """
    today = today or timezone.localdate()
    paiements = Paiement.objects.filter(groupe=groupe)
    if periode is not None:
        paiements = paiements.filter(created_at__date__gte=debut_periode(periode, today))

    eleve_ids = _membres_actifs(groupe)
    etats = tuple(_fan_out(lambda eid: _safe_status(eid, groupe.pk, today, store), eleve_ids, executor))
    cumul = functools.reduce(operator.add, map(CumulStatuts.depuis_etat, etats), CumulStatuts())

    return StatsGroupe(
        groupe_id=groupe.pk,
        groupe_nom=groupe.nom,
        revenu_total=_revenu(paiements),
        cumul=cumul,
        total_eleves=len(eleve_ids),
        etats=etats,
        periode=periode,
    )


# =========================================================
# Stats globales (enseignant)
# =========================================================
@dataclass(frozen=True)
class StatsGlobales:
    revenu_total: Decimal
    cumul: CumulStatuts
    total_groupes: int
    eleves_actifs: int
    par_groupe: Tuple[StatsGroupe, ...] = field(default=(), repr=False)

    @property
    def taux_recouvrement(self) -> Decimal:
        return calcul_taux_recouvrement(self.revenu_total, self.cumul)

    def as_dict(self) -> dict:
        return {
            "total_revenue": self.revenu_total,
            "pending_amount": self.cumul.montant_en_attente,
            "overdue_amount": self.cumul.montant_en_retard,
            "collection_rate": self.taux_recouvrement,
            "total_groups": self.total_groupes,
            "active_students": self.eleves_actifs,
            "students_up_to_date": self.cumul.a_jour,
            "students_with_pending": self.cumul.en_attente,
            "students_with_overdue": self.cumul.en_retard,
        }


def global_payment_stats(enseignant, today: date_cls = None, executor=None, store=None) -> StatsGlobales:
    today = today or timezone.localdate()
    groupes = list(Groupe.objects.filter(enseignant=enseignant, is_active=True))

    # groupes en séquence : le parallélisme se fait au niveau élève
    par_groupe = tuple(group_payment_stats(g, today=today, executor=executor, store=store) for g in groupes)

    return StatsGlobales(
        revenu_total=sum((s.revenu_total for s in par_groupe), ZERO),
        cumul=functools.reduce(operator.add, (s.cumul for s in par_groupe), CumulStatuts()),
        total_groupes=len(groupes),
        eleves_actifs=sum(s.total_eleves for s in par_groupe),
        par_groupe=par_groupe,
    )


# =========================================================
# Résumés par élève (liste des paiements d'un groupe)
# =========================================================
@dataclass(frozen=True)
class ResumePaiementEleve:
    eleve_id: int
    nom: str
    statut: StatutCompte
    total_du: Decimal
    total_paye: Decimal
    montant_en_retard: Decimal
    seances_suivies: int
    seances_par_cycle: int
    prochaine_echeance: Optional[date_cls] = None
    dernier_paiement: Optional[date_cls] = None

    def as_dict(self) -> dict:
        return {
            "student_id": self.eleve_id,
            "student_name": self.nom,
            "payment_status": self.statut.value,
            "total_due": self.total_du,
            "total_paid": self.total_paye,
            "overdue_amount": self.montant_en_retard,
            "attended_sessions": self.seances_suivies,
            "sessions_in_current_cycle": self.seances_par_cycle,
            "next_due_date": self.prochaine_echeance,
            "last_payment_date": self.dernier_paiement,
        }


def _resume(eleve_id, nom, groupe_id, today, store=None) -> ResumePaiementEleve:
    store = store or PaymentStore()
    try:
        etat = calculate_student_payment_status(eleve_id, groupe_id, today=today, store=store)
        totaux = store.payment_totals(eleve_id, groupe_id)
    except DataUnavailableError:
        logger.exception("Erreur résumé paiement eleve=%s groupe=%s", eleve_id, groupe_id)
        return ResumePaiementEleve(
            eleve_id=eleve_id,
            nom=nom,
            statut=StatutCompte.EN_ATTENTE,
            total_du=ZERO,
            total_paye=ZERO,
            montant_en_retard=ZERO,
            seances_suivies=0,
            seances_par_cycle=0,
        )

    # montants : paiements enregistrés ; échéance : la plus proche, sinon celle du calcul
    return ResumePaiementEleve(
        eleve_id=eleve_id,
        nom=nom,
        statut=etat.statut,
        total_du=totaux.total_en_attente + totaux.total_en_retard,
        total_paye=totaux.total_paye,
        montant_en_retard=totaux.total_en_retard,
        seances_suivies=etat.seances_suivies,
        seances_par_cycle=etat.seances_par_cycle,
        prochaine_echeance=totaux.prochaine_echeance or etat.prochaine_echeance,
        dernier_paiement=totaux.dernier_paiement,
    )


def student_payment_summaries(groupe: Groupe, today: date_cls = None, executor=None, store=None) -> List[ResumePaiementEleve]:
    today = today or timezone.localdate()
    membres = list(
        groupe.membres
        .filter(is_active=True)
        .select_related("eleve")
        .order_by("eleve__nom", "eleve__prenom")
    )
    return _fan_out(
        lambda m: _resume(m.eleve_id, m.eleve.nom_complet, groupe.pk, today, store),
        membres,
        executor,
    )


# =========================================================
# Génération en lot (bouton "Générer les paiements")
# =========================================================
def generate_group_payments(groupe: Groupe, enseignant=None, today: date_cls = None, store=None) -> int:
    """
    Lance le générateur pour chaque membre actif. Retourne le nombre de paiements créés.
    Une erreur sur un élève n'arrête pas le lot.
    """
    today = today or timezone.localdate()
    enseignant_id = enseignant.pk if enseignant is not None else groupe.enseignant_id

    crees = 0
    for eleve_id in _membres_actifs(groupe):
        try:
            if create_pending_payment_if_needed(eleve_id, groupe.pk, enseignant_id, today=today, store=store):
                crees += 1
        except DataUnavailableError:
            logger.exception("Erreur génération paiement eleve=%s groupe=%s", eleve_id, groupe.pk)

    logger.info("%s paiement(s) généré(s) pour le groupe %s", crees, groupe.pk)
    return crees
