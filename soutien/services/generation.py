# soutien/services/generation.py
from __future__ import annotations

import logging
from datetime import date as date_cls

from dateutil.relativedelta import relativedelta
from django.utils import timezone

from soutien.models import Paiement

from .donnees import PaymentStore
from .registre import RegistrePaiements
from .statut import progression_eleve
from .tarifs import MODE_SEANCE, resolve_fee_policy

logger = logging.getLogger(__name__)


def create_pending_payment_if_needed(
    eleve_id,
    groupe_id,
    enseignant_id=None,
    today: date_cls = None,
    store: PaymentStore = None,
) -> bool:
    """
    Crée UN paiement PENDING pour le premier cycle bouclé sans paiement.

    ✅ Idempotent : appelable à chaque présence et depuis un batch.
    ✅ Concurrence : contrainte unique (eleve, groupe, cycle_index) + insertion
       dans un savepoint ; le perdant d'une course ne crée rien.
    """
    today = today or timezone.localdate()
    store = store or PaymentStore()

    config = store.get_group_billing_policy(groupe_id)
    politique = resolve_fee_policy(config.frais_seance, config.frais_mensuel, config.taille_cycle)
    if not politique.est_facturable:
        return False

    progression = progression_eleve(store, eleve_id, groupe_id, politique.taille_cycle)

    registre = RegistrePaiements(store.list_payments(eleve_id, groupe_id))
    cycle_index = registre.next_uncovered_cycle(progression.cycles_completes)
    if cycle_index is None:
        return False

    taille = politique.taille_cycle
    paiement = store.insert_pending_payment(
        eleve_id=eleve_id,
        groupe_id=groupe_id,
        montant=politique.montant_par_cycle,
        date_echeance=today + relativedelta(days=config.delai_paiement_jours),
        cycle_index=cycle_index,
        enseignant_id=enseignant_id,
        notes=f"Paiement automatique - {taille} séance{'s' if taille > 1 else ''}",
        type_paiement=Paiement.SESSION_FEE if politique.mode == MODE_SEANCE else Paiement.MONTHLY_FEE,
    )
    if paiement is None:
        return False

    logger.info(
        "Paiement PENDING créé: eleve=%s groupe=%s cycle=%s montant=%s échéance=%s",
        eleve_id, groupe_id, cycle_index, paiement.montant, paiement.date_echeance,
    )
    return True
