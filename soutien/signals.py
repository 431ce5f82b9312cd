# soutien/signals.py
from __future__ import annotations

import logging

from django.apps import apps
from django.conf import settings
from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from .services.erreurs import DataUnavailableError

logger = logging.getLogger(__name__)


def _generation_auto() -> bool:
    return bool(getattr(settings, "PAIEMENTS_GENERATION_AUTO", True))


def _planifier_generation(eleve_id, groupe_id, enseignant_id):
    # après commit : la présence doit être visible par le générateur
    from .services.generation import create_pending_payment_if_needed

    def _run():
        try:
            create_pending_payment_if_needed(eleve_id, groupe_id, enseignant_id)
        except DataUnavailableError:
            logger.exception("Génération auto échouée eleve=%s groupe=%s", eleve_id, groupe_id)

    transaction.on_commit(_run)


# =========================================================
# 1) Présence PRESENT sur séance terminée -> paiement si seuil atteint
# =========================================================
@receiver(post_save, sender="soutien.Presence")
def generer_paiement_sur_presence(sender, instance, created: bool, **kwargs):
    if not _generation_auto():
        return
    if instance.statut != instance.PRESENT:
        return

    seance = instance.seance
    if seance.statut != seance.COMPLETED:
        return

    _planifier_generation(instance.eleve_id, seance.groupe_id, seance.groupe.enseignant_id)


# =========================================================
# 2) Séance passée en TERMINÉE -> vérifier chaque présent
# =========================================================
@receiver(post_save, sender="soutien.Seance")
def generer_paiements_sur_seance_terminee(sender, instance, created: bool, **kwargs):
    if not _generation_auto():
        return
    if instance.statut != instance.COMPLETED:
        return

    Presence = apps.get_model("soutien", "Presence")
    eleve_ids = instance.presences.filter(statut=Presence.PRESENT).values_list("eleve_id", flat=True)
    for eleve_id in eleve_ids:
        _planifier_generation(eleve_id, instance.groupe_id, instance.groupe.enseignant_id)
