# soutien/services/retards.py
from __future__ import annotations

import logging
from datetime import date as date_cls

from django.utils import timezone

from soutien.models import Paiement

logger = logging.getLogger(__name__)


def mark_overdue_payments(today: date_cls = None, groupe=None) -> int:
    """
    Balayage des retards : PENDING dont l'échéance est dépassée -> OVERDUE.
    Les paiements PAID ne sont jamais touchés.
    """
    today = today or timezone.localdate()

    qs = Paiement.objects.filter(statut=Paiement.PENDING, date_echeance__lt=today)
    if groupe is not None:
        qs = qs.filter(groupe=groupe)

    n = qs.update(statut=Paiement.OVERDUE, updated_at=timezone.now())
    logger.info("Balayage retards (%s): %s paiement(s) passé(s) en OVERDUE", today, n)
    return n
